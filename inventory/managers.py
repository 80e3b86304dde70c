# inventory/managers.py
from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from django.db import models
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import InvalidOperation

if TYPE_CHECKING:
    from .models import (
        InventoryAdjustment,
        InventoryItem,
        InventoryMovement,
        Location,
        Product,
        RawMaterial,
    )


# ============================================================
# Location
# ============================================================
class LocationQuerySet(models.QuerySet["Location"]):
    def active(self) -> "LocationQuerySet":
        return self.filter(is_active=True)

    def default_receiving(self) -> Optional["Location"]:
        return self.active().filter(is_default_receiving=True).order_by("pk").first()


class LocationManager(models.Manager.from_queryset(LocationQuerySet)):  # type: ignore[misc]
    pass


# ============================================================
# Catalog
# ============================================================
class RawMaterialQuerySet(models.QuerySet["RawMaterial"]):
    def active(self) -> "RawMaterialQuerySet":
        return self.filter(is_active=True)

    def low_stock(self) -> "RawMaterialQuerySet":
        """
        Active materials whose cached stock dropped under their reorder point.
        Materials with reorder_point = 0 are never considered low.
        """
        return (
            self.active()
            .filter(reorder_point__gt=0, current_stock_qty__lt=F("reorder_point"))
            .order_by("current_stock_qty", "name")
        )


class RawMaterialManager(models.Manager.from_queryset(RawMaterialQuerySet)):  # type: ignore[misc]
    pass


class ProductQuerySet(models.QuerySet["Product"]):
    def active(self) -> "ProductQuerySet":
        return self.filter(is_active=True)


class ProductManager(models.Manager.from_queryset(ProductQuerySet)):  # type: ignore[misc]
    pass


class BOMItemQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_product(self, product: "Product"):
        return self.active().filter(product=product).select_related("material")


class BOMItemManager(models.Manager.from_queryset(BOMItemQuerySet)):  # type: ignore[misc]
    pass


# ============================================================
# InventoryItem
# ============================================================
class InventoryItemQuerySet(models.QuerySet["InventoryItem"]):
    def materials(self) -> "InventoryItemQuerySet":
        return self.filter(kind=self.model.Kind.MATERIAL)

    def products(self) -> "InventoryItemQuerySet":
        return self.filter(kind=self.model.Kind.PRODUCT)

    def available_status(self) -> "InventoryItemQuerySet":
        return self.filter(status=self.model.Status.AVAILABLE)

    def with_available(self) -> "InventoryItemQuerySet":
        return self.annotate(available=F("quantity_on_hand") - F("quantity_reserved"))

    def has_available(self) -> "InventoryItemQuerySet":
        return self.available_status().filter(quantity_on_hand__gt=F("quantity_reserved"))

    def fifo_order(self) -> "InventoryItemQuerySet":
        """
        Oldest expiry first (lots without expiry last), then oldest lot,
        then insertion order.
        """
        return self.order_by(
            F("expiry_date").asc(nulls_last=True),
            "created_at",
            "pk",
        )

    def fifo_candidates(self, material: "RawMaterial") -> "InventoryItemQuerySet":
        return self.materials().filter(material=material).has_available().fifo_order()

    def allocation_candidates(self, product: "Product") -> "InventoryItemQuerySet":
        return (
            self.products()
            .filter(product=product)
            .has_available()
            .order_by(
                F("batch__production_date").asc(nulls_last=True),
                F("expiry_date").asc(nulls_last=True),
                "created_at",
                "pk",
            )
        )

    def for_batch(self, batch) -> "InventoryItemQuerySet":
        return self.filter(batch=batch)

    def expiring_within(self, days: int) -> "InventoryItemQuerySet":
        today = timezone.localdate()
        return self.filter(
            expiry_date__isnull=False,
            expiry_date__lte=today + timedelta(days=days),
        )

    def search(self, q: str) -> "InventoryItemQuerySet":
        q = (q or "").strip()
        if not q:
            return self
        return self.filter(
            Q(lot_number__icontains=q)
            | Q(material__name__icontains=q)
            | Q(material__sku__icontains=q)
            | Q(product__name__icontains=q)
            | Q(product__sku__icontains=q)
            | Q(batch__batch_code__icontains=q)
        )

    def total_available(self) -> int:
        totals = self.aggregate(
            on_hand=Coalesce(Sum("quantity_on_hand"), 0),
            reserved=Coalesce(Sum("quantity_reserved"), 0),
        )
        return int(totals["on_hand"]) - int(totals["reserved"])

    def with_related(self) -> "InventoryItemQuerySet":
        return self.select_related("material", "product", "batch", "location")


class InventoryItemManager(models.Manager.from_queryset(InventoryItemQuerySet)):  # type: ignore[misc]
    pass


# ============================================================
# Ledger rows (append-only)
# ============================================================
class AppendOnlyQuerySet(models.QuerySet):
    """Bulk update/delete are refused for ledger rows."""

    def update(self, **kwargs):
        raise InvalidOperation(
            "%s rows are append-only and cannot be updated." % self.model.__name__
        )

    def delete(self):
        raise InvalidOperation(
            "%s rows are append-only and cannot be deleted." % self.model.__name__
        )


class InventoryAdjustmentQuerySet(AppendOnlyQuerySet, models.QuerySet["InventoryAdjustment"]):
    def for_item(self, item: "InventoryItem") -> "InventoryAdjustmentQuerySet":
        return self.filter(inventory_item=item)

    def of_type(self, adjustment_type: Optional[str]) -> "InventoryAdjustmentQuerySet":
        if not adjustment_type:
            return self
        return self.filter(adjustment_type=adjustment_type)

    def recent(self, hours: int) -> "InventoryAdjustmentQuerySet":
        since = timezone.now() - timedelta(hours=hours)
        return self.filter(created_at__gte=since)

    def total_delta(self) -> int:
        return int(self.aggregate(total=Coalesce(Sum("delta_qty"), 0))["total"])

    def with_related(self) -> "InventoryAdjustmentQuerySet":
        return self.select_related(
            "inventory_item",
            "inventory_item__material",
            "inventory_item__product",
            "inventory_item__location",
            "created_by",
        )


class InventoryAdjustmentManager(models.Manager.from_queryset(InventoryAdjustmentQuerySet)):  # type: ignore[misc]
    pass


class InventoryMovementQuerySet(AppendOnlyQuerySet, models.QuerySet["InventoryMovement"]):
    def for_item(self, item: "InventoryItem") -> "InventoryMovementQuerySet":
        return self.filter(inventory_item=item)

    def for_location(self, location: "Location") -> "InventoryMovementQuerySet":
        return self.filter(Q(from_location=location.name) | Q(to_location=location.name))

    def of_type(self, movement_type: Optional[str]) -> "InventoryMovementQuerySet":
        if not movement_type:
            return self
        return self.filter(movement_type=movement_type)

    def newest_first(self) -> "InventoryMovementQuerySet":
        return self.order_by("-created_at", "-pk")


class InventoryMovementManager(models.Manager.from_queryset(InventoryMovementQuerySet)):  # type: ignore[misc]
    pass
