import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout

from tasktree.cli import main


class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main(["--dir", self.dir, *args])
        return code, out.getvalue()

    def show(self):
        code, out = self.run_cli("show", "--owner", "alice", "--json")
        self.assertEqual(code, 0)
        return [(n["name"], n["level"]) for n in json.loads(out)]

    def test_build_and_restructure_a_list(self):
        self.assertEqual(self.run_cli("add", "A", "--owner", "alice")[0], 0)
        self.assertEqual(self.run_cli("add", "B", "--owner", "alice")[0], 0)
        self.assertEqual(self.run_cli("add", "C", "--owner", "alice", "-a", "start=09:00")[0], 0)
        self.assertEqual(self.show(), [("A", 0), ("B", 0), ("C", 0)])

        self.assertEqual(self.run_cli("nest", "2", "1", "--owner", "alice")[0], 0)
        self.assertEqual(self.show(), [("A", 0), ("B", 1), ("C", 0)])

        self.assertEqual(self.run_cli("move", "3", "--before", "1", "--owner", "alice")[0], 0)
        self.assertEqual(self.show(), [("C", 0), ("A", 0), ("B", 1)])

        self.assertEqual(self.run_cli("unnest", "3", "--owner", "alice")[0], 0)
        self.assertEqual(self.show(), [("C", 0), ("A", 0), ("B", 0)])

        self.assertEqual(self.run_cli("delete", "1", "3", "--owner", "alice")[0], 0)
        self.assertEqual(self.show(), [("A", 0)])

    def test_add_after_keeps_level(self):
        self.run_cli("add", "A", "--owner", "alice")
        self.run_cli("add", "B", "--owner", "alice")
        self.run_cli("nest", "2", "1", "--owner", "alice")
        self.run_cli("add", "B2", "--after", "2", "--owner", "alice")
        self.assertEqual(self.show(), [("A", 0), ("B", 1), ("B2", 1)])

    def test_rejected_operations_fail(self):
        self.run_cli("add", "A", "--owner", "alice")
        code, out = self.run_cli("unnest", "1", "--owner", "alice")
        self.assertEqual(code, 1)
        self.assertIn("⛔", out)
        code, _ = self.run_cli("move", "1", "--end", "--owner", "alice")
        self.assertEqual(code, 1)
        code, out = self.run_cli("rename", "9", "x", "--owner", "alice")
        self.assertEqual(code, 1)
        self.assertIn("Node not found", out)

    def test_list(self):
        self.run_cli("add", "A", "--owner", "alice", "--kind", "weekly")
        code, out = self.run_cli("list", "--json")
        self.assertEqual(code, 0)
        listing = json.loads(out)
        self.assertEqual(listing[0]["owner_id"], "alice")
        self.assertEqual(listing[0]["kind"], "weekly")

    def test_export(self):
        self.run_cli("add", "A", "--owner", "alice")
        self.run_cli("add", "B", "--owner", "alice")
        self.run_cli("nest", "2", "1", "--owner", "alice")

        code, out = self.run_cli("export", "--owner", "alice")
        self.assertEqual(code, 0)
        exported = json.loads(out)
        self.assertEqual(exported["owner_id"], "alice")
        a, b = exported["nodes"]
        self.assertEqual((a["name"], b["name"]), ("A", "B"))
        self.assertEqual(b["parent_id"], a["id"])

    def test_export_to_file(self):
        self.run_cli("add", "A", "--owner", "alice")
        target = f"{self.dir}/alice-export.json"
        code, out = self.run_cli("export", "--owner", "alice", "-o", target)
        self.assertEqual(code, 0)
        self.assertIn("Exported 1 nodes", out)
        with open(target) as f:
            self.assertEqual(json.load(f)["nodes"][0]["name"], "A")

    def test_export_missing_collection(self):
        code, out = self.run_cli("export", "--owner", "nobody")
        self.assertEqual(code, 1)
        self.assertIn("Collection not found", out)

    def test_no_command_prints_help(self):
        code, out = self.run_cli()
        self.assertEqual(code, 1)
        self.assertIn("tasktree", out)


if __name__ == "__main__":
    unittest.main()
