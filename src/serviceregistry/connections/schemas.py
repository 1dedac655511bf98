from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConnectionType(str, Enum):
    SERVICE_PROVIDER = "saml20-sp"
    IDENTITY_PROVIDER = "saml20-idp"


# Short and spelled-out names editors and scripts use for the SAML entity kinds
CONNECTION_TYPE_ALIASES = {
    "sp": ConnectionType.SERVICE_PROVIDER.value,
    "service-provider": ConnectionType.SERVICE_PROVIDER.value,
    "idp": ConnectionType.IDENTITY_PROVIDER.value,
    "identity-provider": ConnectionType.IDENTITY_PROVIDER.value,
}


class ConnectionState(str, Enum):
    """Workflow labels. Advisory: the store only enforces the single active revision."""
    TEST_ACCEPTED = "testaccepted"
    PROD_ACCEPTED = "prodaccepted"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ConnectionDraft(BaseModel):
    """What an editor submits to create the next revision of a connection."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=1, max_length=255)
    type: ConnectionType
    state: ConnectionState
    is_active: bool = False

    expiration_date: Optional[datetime] = None
    metadata_url: Optional[str] = None
    metadata_valid_until: Optional[datetime] = None
    metadata_cache_until: Optional[datetime] = None

    allow_all_entities: bool = True
    allowed_connections: List[int] = Field(default_factory=list)
    blocked_connections: List[int] = Field(default_factory=list)
    arp_attributes: List[str] = Field(default_factory=list)
    manipulation_code: Optional[str] = None

    revision_note: Optional[str] = None
    notes: Optional[str] = None

    metadata: Dict[str, Any] = Field(default_factory=dict, description="Nested metadata tree")

    @field_validator("type", mode="before")
    @classmethod
    def canonical_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return CONNECTION_TYPE_ALIASES.get(value.strip().lower(), value)
        return value

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("arp_attributes")
    @classmethod
    def unique_attributes(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def clear_peer_lists(self) -> "ConnectionDraft":
        # Allow/block lists mean nothing once every entity is allowed
        if self.allow_all_entities:
            self.allowed_connections = []
            self.blocked_connections = []
        return self


class RevisionDto(BaseModel):
    """Read-side view of a revision: nested metadata and resolved references."""

    id: Optional[int] = None
    name: Optional[str] = None
    revision_nr: Optional[int] = None
    parent_revision_nr: Optional[int] = None
    state: Optional[str] = None
    type: Optional[str] = None
    is_active: bool = False

    expiration_date: Optional[datetime] = None
    metadata_url: Optional[str] = None
    metadata_valid_until: Optional[datetime] = None
    metadata_cache_until: Optional[datetime] = None

    allow_all_entities: bool = True
    allowed_connections: List[int] = Field(default_factory=list)
    blocked_connections: List[int] = Field(default_factory=list)
    arp_attributes: Optional[List[str]] = None
    manipulation_code: Optional[str] = None

    revision_note: Optional[str] = None
    notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: Optional[datetime] = None
    updated_by_user_id: Optional[str] = None
    updated_from_ip: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class ConnectionCollection(BaseModel):
    """Latest revision of every connection, keyed by type then connection id."""

    connections: Dict[str, Dict[int, RevisionDto]] = Field(default_factory=dict)
    total: int = 0


class MetadataDefinitionResponse(BaseModel):
    key: str
    type: str
    default: Any = None
    required: bool = False
    supported: List[str] = Field(default_factory=list)
    select_values: List[str] = Field(default_factory=list)
    description: Optional[str] = None
