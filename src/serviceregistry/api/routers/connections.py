from typing import Any, Dict, List, Optional, Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from serviceregistry.auth.provider import Actor
from serviceregistry.connections import schemas
from serviceregistry.connections.service import ConnectionRevisionService
from serviceregistry.api.dependencies import get_db, get_connection_service
from serviceregistry.api.dependencies_auth import require_current_actor, get_remote_ip
from serviceregistry.platform.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

ServiceDep = Annotated[ConnectionRevisionService, Depends(get_connection_service)]
SessionDep = Annotated[Session, Depends(get_db)]
ActorDep = Annotated[Actor, Depends(require_current_actor)]


@router.get("/", response_model=schemas.ConnectionCollection)
def list_connections(
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    """
    Latest revision of every connection, grouped by type.
    """
    logger.info("Trying to get connections")
    collection = service.get_connection_collection(session)
    logger.info(f"Returned {collection.total} connections")
    return collection

@router.get("/new", response_model=schemas.RevisionDto)
def new_connection(
    service: ServiceDep,
    current_actor: ActorDep,
):
    """
    Default values for a connection that does not exist yet.
    """
    return service.new_connection_defaults()

@router.get("/{connection_id}", response_model=schemas.RevisionDto)
def get_connection(
    connection_id: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    logger.info(f"Trying to get connection '{connection_id}'")
    revision = service.get_latest_revision(session, connection_id)
    dto = service.to_presentation_dto(revision)
    logger.info(f"Returned connection '{dto}'")
    return dto

@router.get("/{connection_id}/active", response_model=schemas.RevisionDto)
def get_active_revision(
    connection_id: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    revision = service.get_active_revision(session, connection_id)
    if revision is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Connection '{connection_id}' has no active revision",
        )
    return service.to_presentation_dto(revision)

@router.get("/{connection_id}/revisions", response_model=List[schemas.RevisionDto])
def list_revisions(
    connection_id: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    """
    Full history of a connection, oldest revision first.
    """
    return [service.to_presentation_dto(r) for r in service.list_revisions(session, connection_id)]

@router.get("/{connection_id}/revisions/{revision_nr}", response_model=schemas.RevisionDto)
def get_revision(
    connection_id: int,
    revision_nr: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    revision = service.get_revision(session, connection_id, revision_nr)
    return service.to_presentation_dto(revision)

@router.post("/", response_model=schemas.RevisionDto, status_code=status.HTTP_201_CREATED)
def create_connection(
    payload: Annotated[Dict[str, Any], Body()],
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
    remote_ip: Annotated[Optional[str], Depends(get_remote_ip)],
):
    """
    Create a new connection. Its first revision is number 0.
    """
    logger.info("Trying to create connection")
    revision = service.create_from_draft(session, None, payload, current_actor, remote_ip)
    dto = service.to_presentation_dto(revision)
    logger.info(f"Created connection '{dto}'")
    return dto

@router.put("/{connection_id}", response_model=schemas.RevisionDto)
def update_connection(
    connection_id: int,
    payload: Annotated[Dict[str, Any], Body()],
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
    remote_ip: Annotated[Optional[str], Depends(get_remote_ip)],
):
    """
    Save an edit as the next revision.

    Send ``expected_revision_nr`` with the revision the edit started from to
    get a 409 instead of overwriting someone else's save.
    """
    logger.info(f"Trying to update connection '{connection_id}'")
    expected_revision_nr = payload.pop("expected_revision_nr", None)
    revision = service.create_from_draft(
        session, connection_id, payload, current_actor, remote_ip, expected_revision_nr
    )
    dto = service.to_presentation_dto(revision)
    logger.info(f"Updated connection '{dto}' to revision '{dto.revision_nr}'")
    return dto

@router.post("/{connection_id}/revisions/{revision_nr}/activate", response_model=schemas.RevisionDto)
def activate_revision(
    connection_id: int,
    revision_nr: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    logger.info(f"Trying to activate revision '{revision_nr}' of connection '{connection_id}'")
    revision = service.activate_revision(session, connection_id, revision_nr)
    return service.to_presentation_dto(revision)

@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_connection(
    connection_id: int,
    service: ServiceDep,
    session: SessionDep,
    current_actor: ActorDep,
):
    logger.info(f"Trying to delete connection '{connection_id}'")
    service.delete_by_id(session, connection_id)
    logger.info(f"Deleted connection '{connection_id}'")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
