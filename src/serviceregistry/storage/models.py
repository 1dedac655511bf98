from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Integer, Boolean, Text, JSON, DateTime, ForeignKey,
    UniqueConstraint, func
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

class Base(DeclarativeBase):
    pass

# Helper to support both Postgres JSONB and generic JSON (for SQLite tests)
JSON_TYPE = JSON().with_variant(JSONB, 'postgresql')
TIMESTAMP_TYPE = DateTime(timezone=True).with_variant(TIMESTAMP(timezone=True), 'postgresql')

# --- Users ---

class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, server_default=func.now())

# --- Connections ---

class ConnectionModel(Base):
    """
    Bookkeeping row for a connection. Everything an editor changes lives on
    its revisions; this row only points at the latest and the active one.
    """
    __tablename__ = "connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    latest_revision_nr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    active_revision_nr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP_TYPE, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, server_default=func.now())

    # Optimistic lock: every append/activate bumps it, stale writers fail
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    revisions: Mapped[List["RevisionModel"]] = relationship(
        back_populates="connection",
        order_by="RevisionModel.revision_nr",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

# --- Revisions ---

class RevisionModel(Base):
    """Immutable snapshot of a connection's configuration."""
    __tablename__ = "connection_revisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connection_id: Mapped[int] = mapped_column(
        ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    revision_nr: Mapped[int] = mapped_column(Integer, nullable=False)
    parent_revision_nr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    state: Mapped[str] = mapped_column(String, nullable=False)

    expiration_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP_TYPE)
    metadata_url: Mapped[Optional[str]] = mapped_column(String)
    metadata_valid_until: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP_TYPE)
    metadata_cache_until: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP_TYPE)

    allow_all_entities: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allowed_connections: Mapped[List[int]] = mapped_column(JSON_TYPE, default=list)
    blocked_connections: Mapped[List[int]] = mapped_column(JSON_TYPE, default=list)
    arp_attributes: Mapped[List[str]] = mapped_column(JSON_TYPE, default=list)

    # Opaque attribute manipulation script, stored verbatim
    manipulation_code: Mapped[Optional[str]] = mapped_column(Text)

    revision_note: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Flat dotted-path map, see serviceregistry.metadata.codec
    flat_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON_TYPE, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, server_default=func.now())
    updated_by_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    updated_from_ip: Mapped[Optional[str]] = mapped_column(String)

    # Relationships
    connection: Mapped["ConnectionModel"] = relationship(back_populates="revisions")
    updated_by_user: Mapped[Optional["UserModel"]] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint('connection_id', 'revision_nr', name='uq_connection_revision_nr'),
    )

    @property
    def is_active(self) -> bool:
        return self.connection is not None and self.connection.active_revision_nr == self.revision_nr
