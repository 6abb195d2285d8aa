"""Exceptions raised by the photo cleaner core."""


class PhotoCleanerError(Exception):
    """Base class for photo cleaner errors."""


class PermissionDeniedError(PhotoCleanerError):
    """The asset store has not granted access; no scan was started."""


class ScanCancelledError(PhotoCleanerError):
    """A scan was cancelled. Raised at cancellation checkpoints inside the scan worker."""


class DeleteFailureError(PhotoCleanerError):
    """The asset store did not complete a batch deletion."""

    def __init__(self, ids, message: str = "The asset store did not complete the deletion."):
        super().__init__(message)
        self.ids = frozenset(ids)
