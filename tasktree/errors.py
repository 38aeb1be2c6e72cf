"""
TASKTREE - Errors
=================
Exception types raised by the editor and its storage collaborator.

Rejected gestures are not errors: they are silent no-ops.
"""


class TaskTreeError(Exception):
    """Base class for tasktree failures"""


class StorageError(TaskTreeError):
    """The storage collaborator could not replace or read a collection"""


class CollectionNotFound(StorageError):
    """No collection stored for the requested owner"""


class InvariantViolation(AssertionError):
    """A flat sequence broke one of the structural invariants.

    Reaching this means the mutation engine has a defect.
    """

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))
