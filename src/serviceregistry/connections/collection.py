"""Listing view: group connections by type, then by id."""

from typing import Dict, Iterable

from serviceregistry.connections.schemas import ConnectionCollection, RevisionDto


def assemble_collection(dtos: Iterable[RevisionDto]) -> ConnectionCollection:
    grouped: Dict[str, Dict[int, RevisionDto]] = {}
    total = 0
    for dto in dtos:
        grouped.setdefault(dto.type, {})[dto.id] = dto
        total += 1
    return ConnectionCollection(connections=grouped, total=total)
