"""Error taxonomy for the reconciliation core."""


class SyncError(Exception):
    """Base class for recoverable sync failures."""


class ResourceBusy(SyncError):
    """Key allocation could not take its table lock within the bounded wait.

    Callers retry the whole unit of work that needed the keys.
    """

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        self.detail = detail
        message = f"Key allocation lock on '{table}' is busy"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SyncStepFailed(SyncError):
    """A sync step (create, close or backfill) aborted for one channel."""

    def __init__(self, step: str, source: str, detail: str):
        self.step = step
        self.source = source
        self.detail = detail
        super().__init__(f"Sync step '{step}' failed for Source {source}: {detail}")
