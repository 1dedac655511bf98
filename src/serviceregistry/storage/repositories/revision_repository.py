from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, and_
import logging

from serviceregistry.exceptions import (
    ConcurrentRevisionConflict,
    ConnectionNotFound,
    RevisionNotFound,
)
from serviceregistry.storage.models import ConnectionModel, RevisionModel
from .base import RevisionStore

logger = logging.getLogger(__name__)

# Columns a caller may set on a new revision; numbering and audit timestamps are ours
DRAFT_FIELDS = frozenset({
    "name", "type", "state",
    "expiration_date", "metadata_url", "metadata_valid_until", "metadata_cache_until",
    "allow_all_entities", "allowed_connections", "blocked_connections",
    "arp_attributes", "manipulation_code",
    "revision_note", "notes",
    "flat_metadata",
    "updated_by_user_id", "updated_from_ip",
})


def _is_revision_nr_collision(error: IntegrityError) -> bool:
    message = str(error.orig)
    return "uq_connection_revision_nr" in message or "connection_revisions.revision_nr" in message


class RevisionRepository(RevisionStore):
    """SQLAlchemy revision store; concurrency is guarded by ConnectionModel.version."""

    # --- Connections ---

    def create_connection(self, session: Session) -> ConnectionModel:
        connection = ConnectionModel()
        session.add(connection)
        session.flush()
        return connection

    def get_connection(self, session: Session, connection_id: int) -> Optional[ConnectionModel]:
        connection = session.get(ConnectionModel, connection_id)
        if connection is None or connection.is_deleted:
            return None
        return connection

    def _require_connection(self, session: Session, connection_id: int) -> ConnectionModel:
        connection = self.get_connection(session, connection_id)
        if connection is None:
            raise ConnectionNotFound(connection_id)
        return connection

    def _flush(self, session: Session, connection_id: int) -> None:
        try:
            session.flush()
        except StaleDataError as e:
            session.rollback()
            logger.warning(f"Stale write on connection {connection_id}: {e}")
            raise ConcurrentRevisionConflict(connection_id) from e
        except IntegrityError as e:
            session.rollback()
            if _is_revision_nr_collision(e):
                logger.warning(f"Revision number collision on connection {connection_id}")
                raise ConcurrentRevisionConflict(connection_id) from e
            raise

    # --- Revisions ---

    def append(
        self,
        session: Session,
        connection_id: int,
        values: Dict[str, Any],
        expected_latest_revision_nr: Optional[int] = None,
    ) -> RevisionModel:
        unknown = set(values) - DRAFT_FIELDS
        if unknown:
            raise ValueError(f"Cannot set {sorted(unknown)} on a new revision")

        connection = self._require_connection(session, connection_id)
        latest = connection.latest_revision_nr

        if expected_latest_revision_nr is not None and expected_latest_revision_nr != latest:
            raise ConcurrentRevisionConflict(
                connection_id,
                f"edit was based on revision {expected_latest_revision_nr} but the latest is {latest}",
            )

        revision_nr = 0 if latest is None else latest + 1
        revision = RevisionModel(
            connection_id=connection.id,
            revision_nr=revision_nr,
            parent_revision_nr=latest,
            **values,
        )
        session.add(revision)

        # Bumps ConnectionModel.version; a concurrent appender sees zero rows updated
        connection.latest_revision_nr = revision_nr
        self._flush(session, connection_id)
        return revision

    def get_latest(self, session: Session, connection_id: int) -> Optional[RevisionModel]:
        connection = self.get_connection(session, connection_id)
        if connection is None or connection.latest_revision_nr is None:
            return None
        return self._select_revision(session, connection.id, connection.latest_revision_nr)

    def get_active(self, session: Session, connection_id: int) -> Optional[RevisionModel]:
        connection = self._require_connection(session, connection_id)
        if connection.active_revision_nr is None:
            return None
        return self._select_revision(session, connection.id, connection.active_revision_nr)

    def get_revision(self, session: Session, connection_id: int, revision_nr: int) -> Optional[RevisionModel]:
        if self.get_connection(session, connection_id) is None:
            return None
        return self._select_revision(session, connection_id, revision_nr)

    def _select_revision(self, session: Session, connection_id: int, revision_nr: int) -> Optional[RevisionModel]:
        stmt = select(RevisionModel).where(
            RevisionModel.connection_id == connection_id,
            RevisionModel.revision_nr == revision_nr,
        )
        return session.scalar(stmt)

    def list_revisions(self, session: Session, connection_id: int) -> List[RevisionModel]:
        self._require_connection(session, connection_id)
        stmt = (
            select(RevisionModel)
            .where(RevisionModel.connection_id == connection_id)
            .order_by(RevisionModel.revision_nr)
        )
        return list(session.scalars(stmt).all())

    def activate(self, session: Session, connection_id: int, revision_nr: int) -> RevisionModel:
        connection = self._require_connection(session, connection_id)
        revision = self._select_revision(session, connection.id, revision_nr)
        if revision is None:
            raise RevisionNotFound(connection_id, revision_nr)

        # The previous active revision is deactivated by the same row update
        connection.active_revision_nr = revision_nr
        self._flush(session, connection_id)
        return revision

    # --- Listing ---

    def _latest_revisions(self):
        return (
            select(RevisionModel)
            .join(
                ConnectionModel,
                and_(
                    RevisionModel.connection_id == ConnectionModel.id,
                    RevisionModel.revision_nr == ConnectionModel.latest_revision_nr,
                ),
            )
            .where(ConnectionModel.deleted_at.is_(None))
        )

    def list_all(self, session: Session) -> List[RevisionModel]:
        stmt = self._latest_revisions().order_by(ConnectionModel.id)
        return list(session.scalars(stmt).unique().all())

    def find_latest_by_name(self, session: Session, name: str) -> Optional[RevisionModel]:
        stmt = self._latest_revisions().where(RevisionModel.name == name).limit(1)
        return session.scalars(stmt).unique().first()

    # --- Removal ---

    def delete_connection(self, session: Session, connection_id: int) -> bool:
        connection = self.get_connection(session, connection_id)
        if connection is None:
            return False

        connection.deleted_at = datetime.now(timezone.utc)
        connection.active_revision_nr = None
        self._flush(session, connection_id)
        return True

    def purge_connection(self, session: Session, connection_id: int) -> bool:
        connection = session.get(ConnectionModel, connection_id)
        if connection is None:
            return False

        session.delete(connection)
        self._flush(session, connection_id)
        return True
