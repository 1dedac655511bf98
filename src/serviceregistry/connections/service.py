"""
Connection Revision Service - every edit of a connection becomes a new revision.

Sits between the API layer and the revision store: validates drafts, flattens
their metadata through the codec, stamps the acting user and hands the result
to the store. Store and codec errors propagate unchanged.
"""

from typing import Any, Dict, List, Optional, Union
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from serviceregistry.auth.provider import Actor
from serviceregistry.connections import schemas
from serviceregistry.connections.collection import assemble_collection
from serviceregistry.exceptions import ConnectionNotFound, RevisionNotFound, ValidationFailed
from serviceregistry.metadata.codec import MetadataCodec
from serviceregistry.platform.config import settings
from serviceregistry.storage.models import RevisionModel
from serviceregistry.storage.repositories.base import RevisionStore
from serviceregistry.storage.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class ConnectionRevisionService:
    def __init__(
        self,
        store: RevisionStore,
        user_repo: UserRepository,
        codec: MetadataCodec,
        ignore_missing_definition: Optional[bool] = None,
    ):
        self.store = store
        self.user_repo = user_repo
        self.codec = codec
        if ignore_missing_definition is None:
            ignore_missing_definition = settings.METADATA_IGNORE_MISSING_DEFINITION
        self.ignore_missing_definition = ignore_missing_definition

    # --- Writes ---

    def create_from_draft(
        self,
        session: Session,
        connection_id: Optional[int],
        draft: Union[schemas.ConnectionDraft, Dict[str, Any]],
        actor: Actor,
        remote_ip: Optional[str] = None,
        expected_revision_nr: Optional[int] = None,
    ) -> RevisionModel:
        """
        Persist a draft as the next revision of ``connection_id``.

        A ``connection_id`` of None creates a new connection whose first
        revision is number 0. ``expected_revision_nr`` is the revision the
        editor started from; if someone saved in between the call fails with
        ConcurrentRevisionConflict instead of silently overwriting.
        """
        draft = self._validate(draft)

        if connection_id is not None and self.store.get_connection(session, connection_id) is None:
            raise ConnectionNotFound(connection_id)
        self._check_unique_name(session, draft.name, connection_id)

        flat_metadata = self.codec.flatten(draft.metadata, self.ignore_missing_definition)
        user = self.user_repo.get_or_create(session, actor.display_name)

        if connection_id is None:
            connection_id = self.store.create_connection(session).id

        values = {
            "name": draft.name,
            "type": draft.type,
            "state": draft.state,
            "expiration_date": draft.expiration_date,
            "metadata_url": draft.metadata_url,
            "metadata_valid_until": draft.metadata_valid_until,
            "metadata_cache_until": draft.metadata_cache_until,
            "allow_all_entities": draft.allow_all_entities,
            "allowed_connections": list(draft.allowed_connections),
            "blocked_connections": list(draft.blocked_connections),
            "arp_attributes": list(draft.arp_attributes),
            "manipulation_code": draft.manipulation_code,
            "revision_note": draft.revision_note,
            "notes": draft.notes,
            "flat_metadata": flat_metadata,
            "updated_by_user_id": user.id,
            "updated_from_ip": remote_ip,
        }
        revision = self.store.append(session, connection_id, values, expected_revision_nr)

        if draft.is_active:
            self.store.activate(session, connection_id, revision.revision_nr)

        if revision.revision_nr == 0:
            logger.info(f"Connection '{connection_id}' created")
        else:
            logger.info(f"Connection '{connection_id}' updated to revision '{revision.revision_nr}'")
        return revision

    def activate_revision(self, session: Session, connection_id: int, revision_nr: int) -> RevisionModel:
        revision = self.store.activate(session, connection_id, revision_nr)
        logger.info(f"Connection '{connection_id}' activated revision '{revision_nr}'")
        return revision

    def delete_by_id(self, session: Session, connection_id: int, purge: Optional[bool] = None) -> None:
        if purge is None:
            purge = settings.PURGE_ON_DELETE

        removed = (
            self.store.purge_connection(session, connection_id)
            if purge
            else self.store.delete_connection(session, connection_id)
        )
        if not removed:
            raise ConnectionNotFound(connection_id)
        logger.info(f"Connection '{connection_id}' {'purged' if purge else 'deleted'}")

    # --- Reads ---

    def get_latest_revision(self, session: Session, connection_id: int) -> RevisionModel:
        revision = self.store.get_latest(session, connection_id)
        if revision is None:
            raise ConnectionNotFound(connection_id)
        return revision

    def get_active_revision(self, session: Session, connection_id: int) -> Optional[RevisionModel]:
        """None means the connection exists but nothing is active yet."""
        return self.store.get_active(session, connection_id)

    def get_revision(self, session: Session, connection_id: int, revision_nr: int) -> RevisionModel:
        if self.store.get_connection(session, connection_id) is None:
            raise ConnectionNotFound(connection_id)
        revision = self.store.get_revision(session, connection_id, revision_nr)
        if revision is None:
            raise RevisionNotFound(connection_id, revision_nr)
        return revision

    def list_revisions(self, session: Session, connection_id: int) -> List[RevisionModel]:
        return self.store.list_revisions(session, connection_id)

    def list_connections(self, session: Session) -> List[RevisionModel]:
        return self.store.list_all(session)

    def get_connection_collection(self, session: Session) -> schemas.ConnectionCollection:
        return assemble_collection(
            self.to_presentation_dto(revision, for_listing=True)
            for revision in self.list_connections(session)
        )

    # --- Presentation ---

    def to_presentation_dto(self, revision: RevisionModel, for_listing: bool = False) -> schemas.RevisionDto:
        """
        Nested metadata, actor and origin as display strings. Listings never
        expose the manipulation code or the attribute release policy.
        """
        user = revision.updated_by_user
        return schemas.RevisionDto(
            id=revision.connection_id,
            name=revision.name,
            revision_nr=revision.revision_nr,
            parent_revision_nr=revision.parent_revision_nr,
            state=revision.state,
            type=revision.type,
            is_active=revision.is_active,
            expiration_date=revision.expiration_date,
            metadata_url=revision.metadata_url,
            metadata_valid_until=revision.metadata_valid_until,
            metadata_cache_until=revision.metadata_cache_until,
            allow_all_entities=revision.allow_all_entities,
            allowed_connections=list(revision.allowed_connections or []),
            blocked_connections=list(revision.blocked_connections or []),
            arp_attributes=None if for_listing else list(revision.arp_attributes or []),
            manipulation_code=None if for_listing else revision.manipulation_code,
            revision_note=revision.revision_note,
            notes=revision.notes,
            metadata=self.codec.unflatten(revision.flat_metadata or {}),
            created_at=revision.created_at,
            updated_by_user_id=user.username if user else None,
            updated_from_ip=str(revision.updated_from_ip) if revision.updated_from_ip else None,
        )

    def new_connection_defaults(self) -> schemas.RevisionDto:
        """Starting point of the create form."""
        return schemas.RevisionDto(
            state=settings.DEFAULT_CONNECTION_STATE,
            allow_all_entities=True,
            metadata=self.codec.defaults(),
        )

    # --- Helpers ---

    def _validate(self, draft: Union[schemas.ConnectionDraft, Dict[str, Any]]) -> schemas.ConnectionDraft:
        if isinstance(draft, schemas.ConnectionDraft):
            return draft
        try:
            return schemas.ConnectionDraft.model_validate(draft)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(part) for part in error["loc"]) or "draft", "message": error["msg"]}
                for error in e.errors()
            ]
            raise ValidationFailed(errors) from e

    def _check_unique_name(self, session: Session, name: str, connection_id: Optional[int]) -> None:
        existing = self.store.find_latest_by_name(session, name)
        if existing is not None and existing.connection_id != connection_id:
            raise ValidationFailed.for_field(
                "name", f"Connection name '{name}' is already used by connection '{existing.connection_id}'"
            )
