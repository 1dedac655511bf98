from unittest.mock import patch

from sqlalchemy import func, select

from serviceregistry.storage.models import UserModel
from serviceregistry.storage.repositories.user_repository import UserRepository


def test_get_or_create_creates_once(session):
    repo = UserRepository()

    first = repo.get_or_create(session, "jdoe")
    second = repo.get_or_create(session, "jdoe")

    assert first.id is not None
    assert first.id == second.id
    assert repo.get_by_username(session, "jdoe").id == first.id

def test_get_by_username_missing(session):
    assert UserRepository().get_by_username(session, "nobody") is None

def test_get_or_create_lost_race_returns_existing_user(session):
    repo = UserRepository()
    existing = repo.get_or_create(session, "jdoe")

    # The first lookup misses because another request inserts the row in between
    with patch.object(repo, "get_by_username", side_effect=[None, existing]):
        user = repo.get_or_create(session, "jdoe")

    assert user is existing
    # The surrounding transaction is still usable
    assert session.scalar(select(func.count()).select_from(UserModel)) == 1
    assert repo.get_or_create(session, "jane").username == "jane"
