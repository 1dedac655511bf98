import pytest
from unittest.mock import Mock

from serviceregistry.auth.provider import Actor
from serviceregistry.connections import schemas
from serviceregistry.connections.service import ConnectionRevisionService
from serviceregistry.exceptions import (
    ConcurrentRevisionConflict,
    ConnectionNotFound,
    RevisionNotFound,
    UndefinedMetadataKey,
    ValidationFailed,
)
from serviceregistry.storage.models import RevisionModel, UserModel
from serviceregistry.storage.repositories.revision_repository import RevisionRepository
from serviceregistry.storage.repositories.user_repository import UserRepository


def sp_draft(**overrides):
    draft = {
        "name": "sp1",
        "type": "saml20-sp",
        "state": "testaccepted",
        "metadata": {"endpoint": {"url": "https://x"}},
    }
    draft.update(overrides)
    return draft


@pytest.fixture
def service(codec):
    return ConnectionRevisionService(
        store=RevisionRepository(),
        user_repo=UserRepository(),
        codec=codec,
        ignore_missing_definition=False,
    )


class TestRevisionLifecycle:
    def test_short_type_scenario(self, session, service, actor):
        rev0 = service.create_from_draft(session, None, sp_draft(type="sp"), actor)
        connection_id = rev0.connection_id
        assert rev0.revision_nr == 0
        assert rev0.type == "saml20-sp"
        assert rev0.is_active is False

        service.activate_revision(session, connection_id, 0)
        assert service.get_active_revision(session, connection_id).revision_nr == 0

        service.create_from_draft(session, connection_id, sp_draft(type="sp", notes="draft2"), actor)
        assert service.get_latest_revision(session, connection_id).revision_nr == 1
        assert service.get_active_revision(session, connection_id).revision_nr == 0

    def test_create_activate_update(self, session, service, actor):
        rev0 = service.create_from_draft(session, None, sp_draft(), actor, "10.0.0.1")
        connection_id = rev0.connection_id

        assert rev0.revision_nr == 0
        assert rev0.parent_revision_nr is None
        assert rev0.is_active is False
        assert rev0.flat_metadata == {"endpoint.url": "https://x", "redirect.sign": False}
        assert rev0.updated_by_user.username == actor.display_name
        assert rev0.updated_from_ip == "10.0.0.1"

        service.activate_revision(session, connection_id, 0)
        assert service.get_active_revision(session, connection_id).revision_nr == 0

        rev1 = service.create_from_draft(session, connection_id, sp_draft(revision_note="second"), actor)
        assert rev1.revision_nr == 1
        assert rev1.parent_revision_nr == 0
        assert service.get_latest_revision(session, connection_id).revision_nr == 1
        # Saving does not move the active pointer
        assert service.get_active_revision(session, connection_id).revision_nr == 0

    def test_draft_marked_active_is_activated(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(is_active=True), actor)
        assert revision.is_active is True
        assert service.get_active_revision(session, revision.connection_id).revision_nr == 0

    def test_accepts_validated_draft(self, session, service, actor):
        draft = schemas.ConnectionDraft(**sp_draft())
        revision = service.create_from_draft(session, None, draft, actor)
        assert revision.name == "sp1"
        assert revision.type == "saml20-sp"

    def test_update_missing_connection(self, session, service, actor):
        with pytest.raises(ConnectionNotFound):
            service.create_from_draft(session, 404, sp_draft(), actor)

    def test_update_from_stale_revision(self, session, service, actor):
        rev0 = service.create_from_draft(session, None, sp_draft(), actor)
        service.create_from_draft(session, rev0.connection_id, sp_draft(), actor, expected_revision_nr=0)

        with pytest.raises(ConcurrentRevisionConflict):
            service.create_from_draft(session, rev0.connection_id, sp_draft(), actor, expected_revision_nr=0)

    def test_delete_then_get_latest(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)
        service.delete_by_id(session, revision.connection_id, purge=False)

        with pytest.raises(ConnectionNotFound):
            service.get_latest_revision(session, revision.connection_id)

    def test_purge_then_get_latest(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)
        connection_id = revision.connection_id
        service.delete_by_id(session, connection_id, purge=True)

        with pytest.raises(ConnectionNotFound):
            service.get_latest_revision(session, connection_id)

    def test_delete_missing_connection(self, session, service):
        with pytest.raises(ConnectionNotFound):
            service.delete_by_id(session, 404, purge=False)

    def test_get_revision(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)

        assert service.get_revision(session, revision.connection_id, 0).name == "sp1"
        with pytest.raises(RevisionNotFound):
            service.get_revision(session, revision.connection_id, 3)
        with pytest.raises(ConnectionNotFound):
            service.get_revision(session, 404, 0)

    def test_list_revisions(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)
        service.create_from_draft(session, revision.connection_id, sp_draft(name="sp1b"), actor)

        names = [r.name for r in service.list_revisions(session, revision.connection_id)]
        assert names == ["sp1", "sp1b"]


class TestValidation:
    def test_blank_name(self, session, service, actor):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_from_draft(session, None, sp_draft(name="   "), actor)
        assert exc_info.value.errors[0]["field"] == "name"

    def test_unknown_type(self, session, service, actor):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_from_draft(session, None, sp_draft(type="oauth"), actor)
        assert [e["field"] for e in exc_info.value.errors] == ["type"]

    def test_undefined_metadata_key(self, session, service, actor):
        with pytest.raises(UndefinedMetadataKey):
            service.create_from_draft(session, None, sp_draft(metadata={"bogus": "x"}), actor)

    def test_ignore_missing_definition(self, session, codec, actor):
        lenient = ConnectionRevisionService(
            RevisionRepository(), UserRepository(), codec, ignore_missing_definition=True
        )
        revision = lenient.create_from_draft(session, None, sp_draft(metadata={"bogus": "x"}), actor)
        assert revision.flat_metadata["bogus"] == "x"

        dto = lenient.to_presentation_dto(revision)
        assert dto.metadata == {"bogus": "x", "redirect": {"sign": False}}

    def test_lenient_value_on_namespace_is_rejected(self, session, codec, actor):
        lenient = ConnectionRevisionService(
            RevisionRepository(), UserRepository(), codec, ignore_missing_definition=True
        )
        with pytest.raises(ValidationFailed) as exc_info:
            lenient.create_from_draft(session, None, sp_draft(metadata={"redirect": "x"}), actor)
        assert exc_info.value.errors[0]["field"] == "metadata.redirect"

        # Nothing unreadable was stored
        assert lenient.get_connection_collection(session).total == 0

    @pytest.mark.parametrize("alias, expected", [
        ("sp", "saml20-sp"),
        ("service-provider", "saml20-sp"),
        ("idp", "saml20-idp"),
        ("identity-provider", "saml20-idp"),
        ("saml20-idp", "saml20-idp"),
    ])
    def test_type_aliases(self, session, service, actor, alias, expected):
        revision = service.create_from_draft(session, None, sp_draft(type=alias), actor)
        assert revision.type == expected

    def test_name_must_be_unique(self, session, service, actor):
        service.create_from_draft(session, None, sp_draft(), actor)

        with pytest.raises(ValidationFailed) as exc_info:
            service.create_from_draft(session, None, sp_draft(), actor)
        assert exc_info.value.errors[0]["field"] == "name"

    def test_keeping_own_name_is_allowed(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)
        again = service.create_from_draft(session, revision.connection_id, sp_draft(), actor)
        assert again.revision_nr == 1

    def test_name_of_deleted_connection_is_free(self, session, service, actor):
        revision = service.create_from_draft(session, None, sp_draft(), actor)
        service.delete_by_id(session, revision.connection_id, purge=False)

        replacement = service.create_from_draft(session, None, sp_draft(), actor)
        assert replacement.connection_id != revision.connection_id

    def test_allow_all_clears_peer_lists(self, session, service, actor):
        revision = service.create_from_draft(
            session, None, sp_draft(allow_all_entities=True, allowed_connections=[2, 3]), actor
        )
        assert revision.allowed_connections == []

        restricted = service.create_from_draft(
            session, None, sp_draft(name="sp2", allow_all_entities=False, allowed_connections=[2, 3]), actor
        )
        assert restricted.allowed_connections == [2, 3]


class TestPresentation:
    def test_dto_has_nested_metadata(self, session, service, actor):
        revision = service.create_from_draft(
            session, None, sp_draft(arp_attributes=["mail", "mail", "cn"], manipulation_code="$x = 1;"), actor
        )
        dto = service.to_presentation_dto(revision)

        assert dto.id == revision.connection_id
        assert dto.metadata == {"endpoint": {"url": "https://x"}, "redirect": {"sign": False}}
        assert dto.updated_by_user_id == actor.display_name
        assert dto.arp_attributes == ["mail", "cn"]
        assert dto.manipulation_code == "$x = 1;"
        assert str(dto) == f"sp1 ({revision.connection_id})"

    def test_listing_hides_sensitive_fields(self, session, service, actor):
        revision = service.create_from_draft(
            session, None, sp_draft(arp_attributes=["mail"], manipulation_code="$x = 1;"), actor
        )
        dto = service.to_presentation_dto(revision, for_listing=True)

        assert dto.arp_attributes is None
        assert dto.manipulation_code is None

    def test_connection_collection(self, session, service, actor):
        service.create_from_draft(session, None, sp_draft(), actor)
        service.create_from_draft(session, None, sp_draft(name="idp1", type="saml20-idp"), actor)

        collection = service.get_connection_collection(session)
        assert collection.total == 2
        assert set(collection.connections) == {"saml20-sp", "saml20-idp"}
        [sp] = collection.connections["saml20-sp"].values()
        assert sp.name == "sp1"
        assert sp.manipulation_code is None

    def test_new_connection_defaults(self, service):
        dto = service.new_connection_defaults()

        assert dto.id is None
        assert dto.state == "testaccepted"
        assert dto.allow_all_entities is True
        assert dto.metadata["redirect"]["sign"] is False


class TestWithMockedStore:
    """Collaborator contracts, without a database."""

    def make_service(self, codec):
        store = Mock()
        user_repo = Mock()
        user_repo.get_or_create.return_value = UserModel(id=7, username="jdoe@example.org")
        return ConnectionRevisionService(store, user_repo, codec, ignore_missing_definition=False), store

    def test_create_new_connection(self, codec):
        service, store = self.make_service(codec)
        mock_session = Mock()
        store.find_latest_by_name.return_value = None
        store.create_connection.return_value = Mock(id=5)
        store.append.return_value = RevisionModel(connection_id=5, revision_nr=0)

        result = service.create_from_draft(mock_session, None, sp_draft(), Actor("jdoe@example.org"), "::1")

        assert result.revision_nr == 0
        store.get_connection.assert_not_called()
        store.activate.assert_not_called()

        args = store.append.call_args[0]
        assert args[0] is mock_session
        assert args[1] == 5
        values = args[2]
        assert values["name"] == "sp1"
        assert values["flat_metadata"] == {"endpoint.url": "https://x", "redirect.sign": False}
        assert values["updated_by_user_id"] == 7
        assert values["updated_from_ip"] == "::1"
        assert args[3] is None

    def test_store_errors_propagate(self, codec):
        service, store = self.make_service(codec)
        store.find_latest_by_name.return_value = None
        store.get_connection.return_value = Mock(id=5)
        store.append.side_effect = ConcurrentRevisionConflict(5)

        with pytest.raises(ConcurrentRevisionConflict):
            service.create_from_draft(Mock(), 5, sp_draft(), Actor("jdoe@example.org"))

    def test_get_active_passes_through_none(self, codec):
        service, store = self.make_service(codec)
        store.get_active.return_value = None

        assert service.get_active_revision(Mock(), 5) is None

    def test_delete_uses_configured_mode(self, codec):
        service, store = self.make_service(codec)
        store.delete_connection.return_value = True
        mock_session = Mock()

        service.delete_by_id(mock_session, 5, purge=False)

        store.delete_connection.assert_called_with(mock_session, 5)
        store.purge_connection.assert_not_called()
