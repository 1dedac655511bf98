"""Exception handlers mapping registry errors onto HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from serviceregistry.exceptions import (
    AuthenticationRequired,
    ConcurrentRevisionConflict,
    ConnectionNotFound,
    RevisionNotFound,
    ServiceRegistryError,
    UndefinedMetadataKey,
    ValidationFailed,
)
from serviceregistry.platform.logging import get_logger

logger = get_logger(__name__)

_STATUS_CODES: dict[type, int] = {
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    UndefinedMetadataKey: status.HTTP_400_BAD_REQUEST,
    AuthenticationRequired: status.HTTP_401_UNAUTHORIZED,
    ConnectionNotFound: status.HTTP_404_NOT_FOUND,
    RevisionNotFound: status.HTTP_404_NOT_FOUND,
    ConcurrentRevisionConflict: status.HTTP_409_CONFLICT,
}


def status_code_for(exc: ServiceRegistryError) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def service_registry_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"detail": str(exc)}
    if isinstance(exc, ValidationFailed):
        body["errors"] = exc.errors
    if isinstance(exc, UndefinedMetadataKey):
        body["errors"] = [{"field": f"metadata.{exc.key}", "message": str(exc)}]

    logger.info(
        "Request failed",
        path=request.url.path,
        method=request.method,
        error=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceRegistryError, service_registry_error_handler)
