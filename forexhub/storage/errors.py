# forexhub/storage/errors.py
"""
Error taxonomy shared by every storage adapter.

- StoreUnavailableError: the durable store could not be reached. Read
  handlers degrade instead of failing; the selector re-probes on the next
  reconcile.
- ValidationError: input failed contract checks (missing field, bad format,
  uniqueness collision). Never triggers adapter switching.
- NotFoundError: the requested entity does not exist.
- InitializationError: the durable adapter could not ready itself during a
  proposed switch. The switch is aborted.
"""


class StorageError(Exception):
    """Base class for all storage-layer errors."""

    pass


class StoreUnavailableError(StorageError):
    """Raised when the durable store cannot be reached."""

    pass


class ValidationError(StorageError):
    """Raised when a payload violates a field rule or uniqueness invariant."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(StorageError):
    """Raised when an entity id does not resolve."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InitializationError(StorageError):
    """Raised when the durable adapter fails its readiness step."""

    pass
