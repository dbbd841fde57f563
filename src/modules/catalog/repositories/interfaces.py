"""Catalog collaborator contract.

The order service depends on this read-only port; it never writes to the
catalog and never reads a live price after checkout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable
from uuid import UUID

from modules.catalog.dtos import ProductSnapshot


class ICatalog(ABC):
    @abstractmethod
    def snapshot(self, product_id: UUID) -> ProductSnapshot | None:
        """Return the current snapshot of a product, or ``None`` if unknown."""

    @abstractmethod
    def snapshot_many(self, product_ids: Iterable[UUID]) -> Dict[UUID, ProductSnapshot]:
        """Return snapshots keyed by id; unknown ids are omitted."""
