"""Metadata definitions and the nested/flat metadata codec."""

from .codec import MetadataCodec, coerce_boolean, REDIRECT_SIGN_KEY
from .definitions import (
    DefinitionLookup,
    MetadataDefinition,
    MetadataDefinitionCatalog,
    get_catalog,
)

__all__ = [
    "MetadataCodec",
    "coerce_boolean",
    "REDIRECT_SIGN_KEY",
    "DefinitionLookup",
    "MetadataDefinition",
    "MetadataDefinitionCatalog",
    "get_catalog",
]
