"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.append(os.path.join(os.getcwd(), "src"))

from serviceregistry.auth.provider import Actor
from serviceregistry.metadata.codec import MetadataCodec
from serviceregistry.metadata.definitions import BUNDLED_DEFINITIONS, MetadataDefinitionCatalog
from serviceregistry.storage.models import Base


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> None:
    """Set up test environment variables."""
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("DEBUG", "true")
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture(scope="session")
def catalog() -> MetadataDefinitionCatalog:
    return MetadataDefinitionCatalog.from_yaml(BUNDLED_DEFINITIONS)


@pytest.fixture
def codec(catalog) -> MetadataCodec:
    return MetadataCodec(catalog)


@pytest.fixture
def session():
    # Use in-memory SQLite for isolated unit tests
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def actor() -> Actor:
    return Actor(display_name="jdoe@example.org")
