class SyncError(Exception):
    """Base class for shipping sync failures raised by the pipeline."""

class ValidationError(SyncError):
    """Request is missing required parameters."""

class NotFoundError(SyncError):
    """Brand or credential does not exist."""

class StructuralError(SyncError):
    """Upstream graph is missing fields the walk depends on."""

class PersistenceError(SyncError):
    """A single zone or rate could not be written."""
