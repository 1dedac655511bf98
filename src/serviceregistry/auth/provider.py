"""
Authentication providers.

The registry does not authenticate anyone itself: an upstream login (a SAML
session in front of the admin interface) hands over attributes, and the
provider turns them into the actor stamped on new revisions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from serviceregistry.exceptions import AuthenticationRequired
from serviceregistry.platform.config import settings


@dataclass(frozen=True)
class Actor:
    display_name: str


@dataclass
class AuthSession:
    """Attributes released by the login for the current request."""
    auth_source: Optional[str] = None
    attributes: Dict[str, List[str]] = field(default_factory=dict)

    def is_valid(self, auth_source: str) -> bool:
        return self.auth_source is not None and self.auth_source == auth_source


class AuthenticationProvider(ABC):

    @abstractmethod
    def get_logged_in_username(self) -> str:
        """Raises AuthenticationRequired when nobody is logged in."""

    def get_current_actor(self) -> Actor:
        return Actor(display_name=self.get_logged_in_username())


class SessionAuthenticationProvider(AuthenticationProvider):
    def __init__(
        self,
        session: AuthSession,
        auth_source: Optional[str] = None,
        userid_attr: Optional[str] = None,
    ):
        self.session = session
        self.auth_source = auth_source or settings.AUTH_SOURCE
        self.userid_attr = userid_attr or settings.USERID_ATTR

    def get_logged_in_username(self) -> str:
        if not self.session.is_valid(self.auth_source):
            raise AuthenticationRequired(f"Session is not valid for auth source '{self.auth_source}'")

        values = self.session.attributes.get(self.userid_attr) or []
        if not values or not values[0]:
            raise AuthenticationRequired(f"User ID attribute '{self.userid_attr}' is missing")
        return values[0]


class CliAuthenticationProvider(AuthenticationProvider):
    """Command line runs act as the configured auth source."""

    def __init__(self, auth_source: Optional[str] = None):
        self.auth_source = auth_source or settings.AUTH_SOURCE

    def get_logged_in_username(self) -> str:
        return self.auth_source
