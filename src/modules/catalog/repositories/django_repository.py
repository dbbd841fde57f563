"""Django ORM implementation of the catalog port."""

from __future__ import annotations

from typing import Dict, Iterable
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError

from modules.catalog.dtos import ProductSnapshot
from modules.catalog.models import Product, ProductStatus
from modules.catalog.repositories.interfaces import ICatalog

logger = structlog.get_logger(__name__)


def _to_snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        sku=product.sku,
        name=product.name,
        price=product.price,
        stock_quantity=product.stock_quantity,
        active=product.status == ProductStatus.ACTIVE,
    )


class ProductCatalogRepository(ICatalog):
    """Reads product snapshots from the storefront's product table."""

    def snapshot(self, product_id: UUID) -> ProductSnapshot | None:
        try:
            product = Product.objects.filter(id=product_id).first()
        except (ValueError, ValidationError):
            return None
        return _to_snapshot(product) if product else None

    def snapshot_many(self, product_ids: Iterable[UUID]) -> Dict[UUID, ProductSnapshot]:
        ids = list(product_ids)
        products = Product.objects.filter(id__in=ids)
        snapshots = {product.id: _to_snapshot(product) for product in products}
        logger.debug(
            "catalog.snapshots_loaded", requested=len(ids), found=len(snapshots)
        )
        return snapshots
