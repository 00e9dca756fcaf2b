"""
Reference directory -- existence checks for variants and locations.

Variants (SKUs) and locations are owned by the surrounding catalogue; the
inventory core only stores their ids.  InventoryService asks a
ReferenceDirectory before mutating so an unknown id fails with a typed
NotFoundError instead of silently creating a stock record for it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class ReferenceDirectory(Protocol):
    def variant_exists(self, variant_id: UUID) -> bool: ...

    def location_exists(self, location_id: UUID) -> bool: ...


class AcceptAllReferences:
    """Default directory: every id exists."""

    def variant_exists(self, variant_id: UUID) -> bool:
        return True

    def location_exists(self, location_id: UUID) -> bool:
        return True


class StaticReferenceDirectory:
    """In-memory directory over fixed id sets."""

    def __init__(self, variants: Iterable[UUID] = (), locations: Iterable[UUID] = ()):
        self._variants = frozenset(variants)
        self._locations = frozenset(locations)

    def variant_exists(self, variant_id: UUID) -> bool:
        return variant_id in self._variants

    def location_exists(self, location_id: UUID) -> bool:
        return location_id in self._locations
