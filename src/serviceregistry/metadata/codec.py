"""
Metadata Codec - converts between the nested authoring tree and the flat map
that revisions store.

Nested:  {"redirect": {"sign": True}, "contacts": [{"contactType": "technical"}]}
Flat:    {"redirect.sign": True, "contacts.0.contactType": "technical"}

Plain dicts are the canonical container. Lists are only produced by
``unflatten`` below paths the catalog declares as indexed (a '#' segment
without supported values), so list-vs-map is decided by the catalog and never
guessed from the shape of the keys.
"""

from typing import Any, Dict, Mapping, Optional
import logging

from serviceregistry.exceptions import UndefinedMetadataKey, ValidationFailed
from serviceregistry.metadata.definitions import (
    SEPARATOR,
    MetadataDefinitionCatalog,
    get_catalog,
)

logger = logging.getLogger(__name__)

REDIRECT_SIGN_KEY = "redirect.sign"


def coerce_boolean(value: Any) -> bool:
    """Strict boolean: native bools pass, the string '1' is True, anything else False."""
    if isinstance(value, bool):
        return value
    return value == "1"


class MetadataCodec:
    def __init__(self, catalog: Optional[MetadataDefinitionCatalog] = None):
        self.catalog = catalog or get_catalog()

    def flatten(self, tree: Mapping[str, Any], ignore_missing_definition: bool = False) -> Dict[str, Any]:
        """
        Turns a nested metadata tree into a flat one.

        Raises UndefinedMetadataKey for paths the catalog does not define,
        unless ``ignore_missing_definition`` is set. A key that holds a value
        and also has nested keys below it fails with ValidationFailed in
        either mode, since such a map cannot be unflattened again.
        """
        if tree is None:
            tree = {}
        if not isinstance(tree, Mapping):
            raise TypeError(f"Metadata must be a mapping, got {type(tree).__name__}")

        flat: Dict[str, Any] = {}
        self._flatten_entry(flat, tree, "", ignore_missing_definition)
        self._normalize_redirect_sign(flat)
        self._check_prefix_collisions(flat)
        return flat

    def _flatten_entry(
        self,
        flat: Dict[str, Any],
        node: Any,
        parent_key: str,
        ignore_missing_definition: bool,
    ) -> None:
        items = enumerate(node) if isinstance(node, (list, tuple)) else node.items()
        for key, value in items:
            new_key = self.catalog.join_key_parts(parent_key, key, ignore_missing_definition)

            if isinstance(value, (Mapping, list, tuple)):
                self._flatten_entry(flat, value, new_key, ignore_missing_definition)
                continue

            # A namespace like 'redirect' may be joined, but never hold a value
            if not ignore_missing_definition and not self.catalog.lookup(new_key).valid:
                raise UndefinedMetadataKey(new_key)
            flat[new_key] = value

    def _normalize_redirect_sign(self, flat: Dict[str, Any]) -> None:
        # TODO: this injects redirect.sign=False for every connection, including
        # ones that never sign redirects; move it to catalog defaults once the
        # consumers of the flat map stop relying on the key being present.
        if REDIRECT_SIGN_KEY in flat:
            flat[REDIRECT_SIGN_KEY] = coerce_boolean(flat[REDIRECT_SIGN_KEY])
        else:
            flat[REDIRECT_SIGN_KEY] = coerce_boolean(self.catalog.lookup(REDIRECT_SIGN_KEY).default_value)

    def _check_prefix_collisions(self, flat: Dict[str, Any]) -> None:
        for key in flat:
            segments = key.split(SEPARATOR)
            for i in range(1, len(segments)):
                prefix = SEPARATOR.join(segments[:i])
                if prefix in flat:
                    raise ValidationFailed.for_field(
                        f"metadata.{prefix}",
                        f"Metadata key '{prefix}' holds a value but '{key}' is nested below it",
                    )

    def unflatten(self, flat: Mapping[str, Any]) -> Dict[str, Any]:
        """Rebuilds the nested tree from a flat map."""
        tree: Dict[str, Any] = {}
        for flat_key, value in (flat or {}).items():
            segments = flat_key.split(SEPARATOR)
            node = tree
            for segment in segments[:-1]:
                child = node.setdefault(segment, {})
                if not isinstance(child, dict):
                    raise ValueError(f"Metadata key '{flat_key}' conflicts with a value stored at '{segment}'")
                node = child

            leaf = segments[-1]
            if isinstance(node.get(leaf), dict):
                raise ValueError(f"Metadata key '{flat_key}' conflicts with nested keys below it")
            node[leaf] = value

        return self._restore_lists(tree, "")

    def _restore_lists(self, node: Dict[str, Any], path: str) -> Any:
        for key, value in node.items():
            if isinstance(value, dict):
                child_path = f"{path}{SEPARATOR}{key}" if path else key
                node[key] = self._restore_lists(value, child_path)

        if path and self.catalog.is_indexed(path) and node and all(k.isdigit() for k in node):
            return [node[k] for k in sorted(node, key=int)]
        return node

    def defaults(self) -> Dict[str, Any]:
        """Nested tree of catalog default values, used to pre-fill new drafts."""
        return self.unflatten(self.catalog.default_values())

