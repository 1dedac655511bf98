from typing import Annotated, Optional
from fastapi import Depends, Request

from serviceregistry.auth.provider import (
    Actor,
    AuthSession,
    AuthenticationProvider,
    CliAuthenticationProvider,
    SessionAuthenticationProvider,
)
from serviceregistry.platform.config import settings
from serviceregistry.platform.logging import bind_actor


def get_auth_session(request: Request) -> AuthSession:
    """
    Session attributes as forwarded by the authenticating reverse proxy.
    In production, this would come from the SAML login session.
    """
    username = request.headers.get(settings.AUTH_HEADER)
    if not username:
        return AuthSession()
    return AuthSession(
        auth_source=settings.AUTH_SOURCE,
        attributes={settings.USERID_ATTR: [username]},
    )

def get_authentication_provider(
    auth_session: Annotated[AuthSession, Depends(get_auth_session)],
) -> AuthenticationProvider:
    if settings.CLI_MODE:
        return CliAuthenticationProvider()
    return SessionAuthenticationProvider(auth_session)

async def require_current_actor(
    provider: Annotated[AuthenticationProvider, Depends(get_authentication_provider)],
) -> Actor:
    """
    Enforce that a user is authenticated and tag the request's log lines with it.

    Async so the structlog binding lands in the request context that the
    endpoint runs in.
    """
    actor = provider.get_current_actor()
    bind_actor(actor.display_name)
    return actor

def get_remote_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
