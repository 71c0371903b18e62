from __future__ import annotations

from typing import Optional, Sequence

from .config import TRANSFER_TRANSIT_DAYS
from .models import Location, Product, SourceLocation, Supplier


class SupplierResolver:
    """Picks the purchasing source for a product."""

    def resolve(self, product: Product, suppliers: Sequence[Supplier]) -> Optional[Supplier]:
        raise NotImplementedError


class FirstSupplierResolver(SupplierResolver):
    # Placeholder policy: no product -> supplier mapping exists yet.
    def resolve(self, product: Product, suppliers: Sequence[Supplier]) -> Optional[Supplier]:
        return suppliers[0] if suppliers else None


class MappedSupplierResolver(SupplierResolver):
    """Resolves via an explicit product_id -> supplier_id mapping, with an optional fallback."""

    def __init__(self, mapping: dict, fallback: Optional[SupplierResolver] = None):
        self.mapping = dict(mapping)
        self.fallback = fallback

    def resolve(self, product: Product, suppliers: Sequence[Supplier]) -> Optional[Supplier]:
        wanted = self.mapping.get(product.product_id)
        for supplier in suppliers:
            if supplier.supplier_id == wanted:
                return supplier
        if self.fallback is not None:
            return self.fallback.resolve(product, suppliers)
        return None


class TransitEstimator:
    """Days to move stock from a source location to a destination."""

    def transfer_days(self, source: SourceLocation, destination: Location) -> int:
        raise NotImplementedError


class FixedTransitEstimator(TransitEstimator):
    def __init__(self, days: int = TRANSFER_TRANSIT_DAYS):
        self.days = days

    def transfer_days(self, source: SourceLocation, destination: Location) -> int:
        return self.days
