"""
Entity de-duplication for demultiplexed provider output.
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

E = TypeVar("E")


def normalize_entity_key(value: Any) -> str:
    """Case- and whitespace-insensitive comparison key."""
    return " ".join(str(value or "").split()).casefold()


def dedupe_entities(
    entities: Iterable[E],
    key: str | Callable[[E], Any] = "name",
) -> list[E]:
    """
    Drop repeated entities, first occurrence wins.

    ``key`` is a field name (looked up on mappings or as an attribute) or a
    callable. Entities whose key normalizes to an empty string are dropped.
    """
    if callable(key):
        get_key = key
    else:
        def get_key(entity: E) -> Any:
            if isinstance(entity, Mapping):
                return entity.get(key)
            return getattr(entity, key, None)

    seen: set[str] = set()
    unique: list[E] = []
    for entity in entities:
        normalized = normalize_entity_key(get_key(entity))
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        unique.append(entity)
    return unique
