"""
Metadata Definition Catalog

Static schema of every legal flat metadata key, its default value and typing
hints. Built once at startup from a YAML definition file and read-only after
that, so it can be shared between requests without locking.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

import yaml

from serviceregistry.exceptions import UndefinedMetadataKey
from serviceregistry.platform.config import settings

logger = logging.getLogger(__name__)

SEPARATOR = "."
WILDCARD = "#"

BUNDLED_DEFINITIONS = Path(__file__).with_name("definitions.yaml")

_TYPES = ("text", "boolean", "select", "file")


@dataclass(frozen=True)
class MetadataDefinition:
    key: str
    type: str = "text"
    default: Any = None
    required: bool = False
    supported: Tuple[str, ...] = ()
    select_values: Tuple[str, ...] = ()
    description: Optional[str] = None
    segments: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.type not in _TYPES:
            raise ValueError(f"Unknown metadata type '{self.type}' for '{self.key}'")
        object.__setattr__(self, "segments", tuple(self.key.split(SEPARATOR)))

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.segments

    def matches_segment(self, position: int, segment: str) -> bool:
        expected = self.segments[position]
        if expected != WILDCARD:
            return expected == segment
        if self.supported:
            return segment in self.supported
        return segment.isdigit()

    def matches(self, segments: Tuple[str, ...]) -> bool:
        if len(segments) != len(self.segments):
            return False
        return all(self.matches_segment(i, s) for i, s in enumerate(segments))

    def matches_prefix(self, segments: Tuple[str, ...]) -> bool:
        if len(segments) >= len(self.segments):
            return False
        return all(self.matches_segment(i, s) for i, s in enumerate(segments))


@dataclass(frozen=True)
class DefinitionLookup:
    default_value: Any
    valid: bool
    definition: Optional[MetadataDefinition] = None


class MetadataDefinitionCatalog:
    """Read-only index over the metadata definitions."""

    def __init__(self, definitions: Iterable[MetadataDefinition]):
        self._definitions: Dict[str, MetadataDefinition] = {}
        for definition in definitions:
            if definition.key in self._definitions:
                raise ValueError(f"Duplicate metadata definition '{definition.key}'")
            self._definitions[definition.key] = definition

        self._exact = {k: d for k, d in self._definitions.items() if not d.has_wildcard}
        self._wildcards = [d for d in self._definitions.values() if d.has_wildcard]

        namespaces = set()
        for definition in self._exact.values():
            for i in range(1, len(definition.segments)):
                namespaces.add(SEPARATOR.join(definition.segments[:i]))
        self._namespaces = frozenset(namespaces)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MetadataDefinitionCatalog":
        entries = raw.get("definitions") if isinstance(raw, dict) else None
        if not isinstance(entries, dict):
            raise ValueError("Metadata definitions must be a mapping under 'definitions'")

        definitions = []
        for key, spec in entries.items():
            spec = spec or {}
            definitions.append(
                MetadataDefinition(
                    key=str(key),
                    type=spec.get("type", "text"),
                    default=spec.get("default"),
                    required=bool(spec.get("required", False)),
                    supported=tuple(spec.get("supported") or ()),
                    select_values=tuple(spec.get("select_values") or ()),
                    description=spec.get("description"),
                )
            )
        return cls(definitions)

    @classmethod
    def from_yaml(cls, path: Path) -> "MetadataDefinitionCatalog":
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        catalog = cls.from_dict(raw)
        logger.info(f"Loaded {len(catalog)} metadata definitions from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self):
        return iter(self._definitions.values())

    # --- Lookups ---

    def find(self, flat_key: str) -> Optional[MetadataDefinition]:
        """Definition governing ``flat_key`` or None."""
        definition = self._exact.get(flat_key)
        if definition is not None:
            return definition

        segments = tuple(flat_key.split(SEPARATOR))
        for candidate in self._wildcards:
            if candidate.matches(segments):
                return candidate
        return None

    def lookup(self, flat_key: str) -> DefinitionLookup:
        definition = self.find(flat_key)
        if definition is None:
            return DefinitionLookup(default_value=None, valid=False)
        return DefinitionLookup(default_value=definition.default, valid=True, definition=definition)

    def is_namespace(self, flat_key: str) -> bool:
        """True when ``flat_key`` is a proper prefix of at least one definition."""
        if flat_key in self._namespaces:
            return True
        segments = tuple(flat_key.split(SEPARATOR))
        return any(candidate.matches_prefix(segments) for candidate in self._wildcards)

    def is_indexed(self, flat_key: str) -> bool:
        """
        True when the children of ``flat_key`` are list positions.

        A '#' segment without ``supported`` values stands for a list index, so
        e.g. ``contacts`` holds a list while ``name`` holds a per-language map.
        """
        segments = tuple(flat_key.split(SEPARATOR)) if flat_key else ()
        depth = len(segments)
        for candidate in self._wildcards:
            if len(candidate.segments) <= depth:
                continue
            if candidate.segments[depth] != WILDCARD or candidate.supported:
                continue
            if all(candidate.matches_segment(i, s) for i, s in enumerate(segments)):
                return True
        return False

    def join_key_parts(self, parent_key: str, child_key: Any, ignore_missing_definition: bool = False) -> str:
        """
        Build the flat key for ``child_key`` below ``parent_key``.

        Raises UndefinedMetadataKey when the result is neither a definition nor
        a namespace leading to one, unless ``ignore_missing_definition`` is set.
        """
        child_key = str(child_key)
        key = f"{parent_key}{SEPARATOR}{child_key}" if parent_key else child_key

        if ignore_missing_definition:
            return key
        if self.find(key) is None and not self.is_namespace(key):
            raise UndefinedMetadataKey(key)
        return key

    def default_values(self) -> Dict[str, Any]:
        """Flat defaults for every concrete (non-wildcard) definition that has one."""
        return {
            key: definition.default
            for key, definition in self._exact.items()
            if definition.default is not None
        }


@lru_cache()
def get_catalog() -> MetadataDefinitionCatalog:
    """Catalog built from the configured definition file, cached for the process."""
    path = Path(settings.METADATA_DEFINITIONS_PATH) if settings.METADATA_DEFINITIONS_PATH else BUNDLED_DEFINITIONS
    return MetadataDefinitionCatalog.from_yaml(path)
