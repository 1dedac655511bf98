"""
Request-scoped dependencies: database sessions and the connection service.
"""

from typing import Generator, Optional
from sqlalchemy.orm import Session

from serviceregistry.connections.service import ConnectionRevisionService
from serviceregistry.metadata.codec import MetadataCodec
from serviceregistry.metadata.definitions import MetadataDefinitionCatalog, get_catalog
from serviceregistry.storage.postgres_adapter import PostgresAdapter, PostgresConfig
from serviceregistry.storage.repositories.revision_repository import RevisionRepository
from serviceregistry.storage.repositories.user_repository import UserRepository

# Singletons
_postgres_adapter: Optional[PostgresAdapter] = None

def get_postgres_adapter() -> PostgresAdapter:
    global _postgres_adapter
    if not _postgres_adapter:
        _postgres_adapter = PostgresAdapter(PostgresConfig())
    return _postgres_adapter

def get_db() -> Generator[Session, None, None]:
    """One transaction per request: committed on success, rolled back on any error."""
    with get_postgres_adapter().get_session() as session:
        yield session

def get_metadata_catalog() -> MetadataDefinitionCatalog:
    return get_catalog()

def get_metadata_codec() -> MetadataCodec:
    return MetadataCodec(get_catalog())

def get_connection_service() -> ConnectionRevisionService:
    return ConnectionRevisionService(
        store=RevisionRepository(),
        user_repo=UserRepository(),
        codec=get_metadata_codec(),
    )


async def init_resources() -> None:
    """Initialize resources (database, metadata catalog)."""
    adapter = get_postgres_adapter()
    adapter.connect()
    if adapter.config.is_sqlite:
        adapter.create_schema()

    # Fail at startup, not on the first request, if the definitions are broken
    get_catalog()

async def close_resources() -> None:
    """Close all resources."""
    global _postgres_adapter
    if _postgres_adapter:
        _postgres_adapter.close()
        _postgres_adapter = None
