# inventory/queries.py
"""
Read paths for inventory screens and dashboards: filtered item lists,
item detail with movement history, adjustment feeds and low-stock materials.

Nothing in here writes to the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from django.core.paginator import Paginator
from django.db.models import F
from django.utils.translation import gettext as _

from core.exceptions import InvalidInput, NotFound

from .models import (
    InventoryAdjustment,
    InventoryItem,
    InventoryMovement,
    InventorySettings,
    RawMaterial,
)

RECENT_ADJUSTMENTS_LIMIT = 100


@dataclass(frozen=True)
class InventoryPage:
    items: List[InventoryItem]
    total: int
    page: int
    page_size: int
    num_pages: int


@dataclass(frozen=True)
class InventoryDetail:
    item: InventoryItem
    movements: List[InventoryMovement]


def _pk(obj_or_pk: Any) -> Any:
    return getattr(obj_or_pk, "pk", obj_or_pk)


def _positive_or_default(value: Optional[int], label: str, default: Callable[[], int]) -> int:
    """None falls back to the configured default; anything else must be a positive int."""
    if value is None:
        return default()
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(_("%(label)s must be a positive whole number.") % {"label": label})
    return value


def get_inventory_list(
    *,
    kind: Optional[str] = None,
    location: Any = None,
    product: Any = None,
    material: Any = None,
    batch: Any = None,
    status: Optional[str] = None,
    search: str = "",
    has_expiry: Optional[bool] = None,
    expiring_within_days: Optional[int] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> InventoryPage:
    """
    Paginated, filtered list of stock positions, soonest expiry first,
    then newest.
    """
    if kind and kind not in InventoryItem.Kind.values:
        raise InvalidInput(_("Unknown inventory kind: %(value)s.") % {"value": kind})
    if status and status not in InventoryItem.Status.values:
        raise InvalidInput(_("Unknown inventory status: %(value)s.") % {"value": status})

    qs = InventoryItem.objects.with_related()

    if kind:
        qs = qs.filter(kind=kind)
    if location is not None:
        qs = qs.filter(location_id=_pk(location))
    if product is not None:
        qs = qs.filter(product_id=_pk(product))
    if material is not None:
        qs = qs.filter(material_id=_pk(material))
    if batch is not None:
        qs = qs.filter(batch_id=_pk(batch))
    if status:
        qs = qs.filter(status=status)
    if has_expiry is True:
        qs = qs.filter(expiry_date__isnull=False)
    elif has_expiry is False:
        qs = qs.filter(expiry_date__isnull=True)
    if expiring_within_days is not None:
        qs = qs.expiring_within(int(expiring_within_days))
    if search:
        qs = qs.search(search)

    qs = qs.order_by(F("expiry_date").asc(nulls_last=True), "-created_at", "-pk")

    page_size = _positive_or_default(page_size, "page_size", lambda: InventorySettings.get_solo().list_page_size)
    paginator = Paginator(qs, page_size)
    page_obj = paginator.get_page(page)

    return InventoryPage(
        items=list(page_obj.object_list),
        total=paginator.count,
        page=page_obj.number,
        page_size=page_size,
        num_pages=paginator.num_pages,
    )


def get_inventory_detail(item: Any, *, movement_limit: Optional[int] = None) -> InventoryDetail:
    try:
        obj = InventoryItem.objects.with_related().get(pk=_pk(item))
    except (InventoryItem.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Inventory item %(ref)s not found.") % {"ref": _pk(item)})

    limit = _positive_or_default(
        movement_limit, "movement_limit", lambda: InventorySettings.get_solo().detail_movement_limit
    )
    movements = list(
        InventoryMovement.objects.for_item(obj).select_related("user").newest_first()[:limit]
    )
    return InventoryDetail(item=obj, movements=movements)


def get_inventory_adjustments(item: Any):
    """All adjustments of one item, newest first."""
    if not InventoryItem.objects.filter(pk=_pk(item)).exists():
        raise NotFound(_("Inventory item %(ref)s not found.") % {"ref": _pk(item)})
    return (
        InventoryAdjustment.objects.filter(inventory_item_id=_pk(item))
        .select_related("created_by")
        .order_by("-created_at", "-pk")
    )


def get_recent_adjustments(
    *,
    hours: Optional[int] = None,
    adjustment_type: Optional[str] = None,
    limit: int = RECENT_ADJUSTMENTS_LIMIT,
) -> List[InventoryAdjustment]:
    if adjustment_type and adjustment_type not in InventoryAdjustment.AdjustmentType.values:
        raise InvalidInput(_("Unknown adjustment type: %(value)s.") % {"value": adjustment_type})

    hours = _positive_or_default(hours, "hours", lambda: InventorySettings.get_solo().recent_adjustments_hours)
    qs = (
        InventoryAdjustment.objects.recent(hours)
        .of_type(adjustment_type)
        .with_related()
        .order_by("-created_at", "-pk")
    )
    return list(qs[:limit])


def get_low_stock_materials():
    return RawMaterial.objects.low_stock().select_related("default_location")


def get_movement_history(
    *,
    item: Any = None,
    location: Any = None,
    movement_type: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[InventoryMovement]:
    if movement_type and movement_type not in InventoryMovement.MovementType.values:
        raise InvalidInput(_("Unknown movement type: %(value)s.") % {"value": movement_type})

    qs = InventoryMovement.objects.select_related("inventory_item", "user")
    if item is not None:
        qs = qs.filter(inventory_item_id=_pk(item))
    if location is not None:
        qs = qs.for_location(location)
    qs = qs.of_type(movement_type).newest_first()

    limit = _positive_or_default(limit, "limit", lambda: InventorySettings.get_solo().detail_movement_limit)
    return list(qs[:limit])
