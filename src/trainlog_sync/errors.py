"""Error taxonomy for trainlog-sync.

Real faults are raised as exceptions. Data that is not ready yet is never an
exception; it is represented by a ``ResultState`` instead.
"""


class SyncError(Exception):
    """Base class for all trainlog-sync errors."""


class NotFoundError(SyncError):
    """A referenced record id does not exist in the remote store."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Document with id {record_id} does not exist in {collection}")


class TransportError(SyncError):
    """The remote store failed or could not be reached."""


class ValidationError(SyncError):
    """Caller input was rejected (missing reorder target, malformed number, ...)."""


class PartialFailureError(SyncError):
    """A compound mutation committed some of its steps and failed others.

    No rollback is attempted. ``committed`` and ``failed`` name the steps so
    callers can run the matching repair.
    """

    def __init__(self, message: str, committed: list[str], failed: list[str], cause: BaseException):
        self.committed = committed
        self.failed = failed
        self.cause = cause
        super().__init__(message)


class ProgrammerError(SyncError):
    """Internal misuse, such as unwrapping a state that is not Ready."""
