"""
Service Registry error taxonomy.

Every error is scoped to a single request or operation; none of them is fatal
to the process.
"""

from typing import Any, Dict, List, Optional


class ServiceRegistryError(Exception):
    pass


class ValidationFailed(ServiceRegistryError):
    """A connection draft is structurally invalid."""

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Connection draft is invalid"):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls([{"field": field, "message": message}], message)


class UndefinedMetadataKey(ServiceRegistryError):
    """The metadata catalog has no definition for a flat key."""

    def __init__(self, key: str):
        super().__init__(f"Metadata key '{key}' is not defined")
        self.key = key


class ConnectionNotFound(ServiceRegistryError):
    def __init__(self, connection_id: Any):
        super().__init__(f"Connection '{connection_id}' does not exist")
        self.connection_id = connection_id


class RevisionNotFound(ServiceRegistryError):
    def __init__(self, connection_id: Any, revision_nr: Optional[int]):
        super().__init__(f"Revision '{revision_nr}' of connection '{connection_id}' does not exist")
        self.connection_id = connection_id
        self.revision_nr = revision_nr


class ConcurrentRevisionConflict(ServiceRegistryError):
    """Another writer changed the connection between read and write. Retry."""

    def __init__(self, connection_id: Any, detail: str = "connection was modified concurrently"):
        super().__init__(f"Connection '{connection_id}': {detail}")
        self.connection_id = connection_id


class AuthenticationRequired(ServiceRegistryError):
    pass
