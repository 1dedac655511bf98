"""Service Registry Storage Layer - SQLAlchemy models, adapter and repositories."""

from .base import StorageAdapter
from .postgres_adapter import PostgresAdapter, PostgresConfig
from .models import (
    Base,
    ConnectionModel,
    RevisionModel,
    UserModel,
)

__all__ = [
    "StorageAdapter",
    "PostgresAdapter",
    "PostgresConfig",
    "Base",
    "ConnectionModel",
    "RevisionModel",
    "UserModel",
]
