from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ByPosition:
    index: int


@dataclass(frozen=True)
class ByUri:
    uri: str  # falls back to a file name match when no canonical uri matches


@dataclass(frozen=True)
class ByName:
    file_name: str


LookupKey = ByPosition | ByUri | ByName


def lookup_key(value: LookupKey | int | str) -> LookupKey:
    """Build a lookup key from a raw position or uri."""
    if isinstance(value, (ByPosition, ByUri, ByName)):
        return value
    if isinstance(value, bool):
        raise TypeError("a picture can not be looked up by a boolean")
    if isinstance(value, int):
        return ByPosition(value)
    if isinstance(value, str):
        return ByUri(value)
    raise TypeError(f"unsupported lookup key: {value!r}")
