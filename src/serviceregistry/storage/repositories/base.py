from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from serviceregistry.storage.models import ConnectionModel, RevisionModel

class RevisionStore(ABC):
    """
    Append-only revision log keyed by (connection_id, revision_nr).

    Revisions are never updated in place. The only mutable state is the
    per-connection bookkeeping: latest revision, active pointer and the
    deleted marker. Appends and activations for one connection are
    serialized; a writer that lost the race gets ConcurrentRevisionConflict.
    Deleted connections are invisible to every read.
    """

    @abstractmethod
    def create_connection(self, session: Session) -> ConnectionModel:
        """Allocate a new connection id with no revisions yet."""

    @abstractmethod
    def get_connection(self, session: Session, connection_id: int) -> Optional[ConnectionModel]:
        pass

    @abstractmethod
    def append(
        self,
        session: Session,
        connection_id: int,
        values: Dict[str, Any],
        expected_latest_revision_nr: Optional[int] = None,
    ) -> RevisionModel:
        """
        Persist the next revision, linked to the previous latest one.

        Raises ConnectionNotFound for an unknown connection and
        ConcurrentRevisionConflict when the latest revision moved on since
        the caller (or this call) read it.
        """

    @abstractmethod
    def get_latest(self, session: Session, connection_id: int) -> Optional[RevisionModel]:
        pass

    @abstractmethod
    def get_active(self, session: Session, connection_id: int) -> Optional[RevisionModel]:
        """Active revision, None when there is none. Raises ConnectionNotFound."""

    @abstractmethod
    def get_revision(self, session: Session, connection_id: int, revision_nr: int) -> Optional[RevisionModel]:
        pass

    @abstractmethod
    def list_revisions(self, session: Session, connection_id: int) -> List[RevisionModel]:
        pass

    @abstractmethod
    def activate(self, session: Session, connection_id: int, revision_nr: int) -> RevisionModel:
        """Move the active pointer. Raises ConnectionNotFound / RevisionNotFound."""

    @abstractmethod
    def list_all(self, session: Session) -> List[RevisionModel]:
        """Latest revision of every live connection."""

    @abstractmethod
    def find_latest_by_name(self, session: Session, name: str) -> Optional[RevisionModel]:
        pass

    @abstractmethod
    def delete_connection(self, session: Session, connection_id: int) -> bool:
        """Mark the connection deleted. False when it does not exist."""

    @abstractmethod
    def purge_connection(self, session: Session, connection_id: int) -> bool:
        """Irreversibly remove the connection and all its revisions."""
