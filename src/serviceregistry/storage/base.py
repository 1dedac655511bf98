from abc import ABC, abstractmethod
from typing import ContextManager
from sqlalchemy.orm import Session


class StorageAdapter(ABC):
    """
    Owns the database engine for the registry.

    Repositories never open connections themselves; they receive the Session
    handed out by ``get_session`` and only flush.
    """

    @abstractmethod
    def connect(self) -> None:
        """Create the engine and session factory. Idempotent."""

    @abstractmethod
    def close(self) -> None:
        """Dispose of the engine; a later connect() starts over."""

    @abstractmethod
    def health_check(self) -> bool:
        """True when a trivial query round-trips."""

    @abstractmethod
    def get_session(self) -> ContextManager[Session]:
        """One unit of work: committed on clean exit, rolled back on error."""

    @abstractmethod
    def create_schema(self) -> None:
        """Create all tables known to the ORM (local development and tests)."""
