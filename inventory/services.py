# inventory/services.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional, TYPE_CHECKING

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext as _

from core.domain.dispatcher import emit
from core.exceptions import (
    InsufficientInventory,
    InvalidInput,
    InvalidOperation,
    InvalidStatus,
    LocationValidationError,
    NotFound,
)
from core.models import AuditLog, actor_or_none
from core.services.audit import log_event

from .domain import MaterialShortage, MaterialStockLow
from .models import (
    InventoryAdjustment,
    InventoryItem,
    InventoryMovement,
    Location,
    Product,
    RawMaterial,
    movement_type_for,
)

if TYPE_CHECKING:
    from django.contrib.auth import get_user_model
    User = get_user_model()

logger = logging.getLogger(__name__)

AdjustmentType = InventoryAdjustment.AdjustmentType
RelatedEntity = InventoryAdjustment.RelatedEntity
MovementType = InventoryMovement.MovementType


# ============================================================
# Results
# ============================================================

@dataclass(frozen=True)
class AdjustmentResult:
    adjustment: InventoryAdjustment
    movement: InventoryMovement
    item: InventoryItem

    @property
    def new_quantity(self) -> int:
        return self.item.quantity_on_hand


@dataclass(frozen=True)
class ConsumedLot:
    item_id: int
    lot_number: str
    location: str
    expiry_date: Optional[date]
    quantity: int
    adjustment_id: int


@dataclass
class ConsumptionResult:
    material_id: int
    requested: int
    consumed_total: int = 0
    lots: List[ConsumedLot] = field(default_factory=list)

    @property
    def shortage(self) -> int:
        return self.requested - self.consumed_total

    @property
    def is_complete(self) -> bool:
        return self.consumed_total >= self.requested


@dataclass(frozen=True)
class MoveResult:
    source: InventoryItem
    destination: InventoryItem
    quantity: int


@dataclass(frozen=True)
class AllocationLine:
    item_id: int
    quantity: int


@dataclass(frozen=True)
class AllocationResult:
    product_id: int
    quantity: int
    reference: str
    lines: List[AllocationLine]


# ============================================================
# Validation helpers (run before any write)
# ============================================================

def _validate_quantity(value: Any, *, label: str = "quantity", allow_negative: bool = False) -> int:
    """
    Quantities are whole units. Floats, decimals, strings and booleans
    are rejected rather than truncated.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(
            _("%(label)s must be a whole number, got %(value)r.") % {"label": label, "value": value}
        )
    if value == 0:
        raise InvalidInput(_("%(label)s cannot be zero.") % {"label": label})
    if value < 0 and not allow_negative:
        raise InvalidInput(_("%(label)s must be positive.") % {"label": label})
    return value


def _validate_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInput(_("A reason is required for inventory adjustments."))
    return reason


def _validate_choice(value: str, choices, label: str) -> str:
    if value not in choices.values:
        raise InvalidInput(_("Unknown %(label)s: %(value)s.") % {"label": label, "value": value})
    return value


def _pk(obj_or_pk: Any) -> Any:
    return getattr(obj_or_pk, "pk", obj_or_pk)


def get_material(material: Any) -> RawMaterial:
    if isinstance(material, RawMaterial):
        return material
    try:
        return RawMaterial.objects.get(pk=material)
    except (RawMaterial.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Material %(ref)s not found.") % {"ref": material})


def get_product(product: Any) -> Product:
    if isinstance(product, Product):
        return product
    try:
        return Product.objects.get(pk=product)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Product %(ref)s not found.") % {"ref": product})


def get_location(location: Any) -> Location:
    if isinstance(location, Location):
        return location
    try:
        return Location.objects.get(pk=location)
    except (Location.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Location %(ref)s not found.") % {"ref": location})


def _ensure_active_location(location: Location) -> Location:
    if not location.is_active:
        raise LocationValidationError(
            _('Location "%(name)s" is inactive. Choose an active location.') % {"name": location.name}
        )
    return location


# ============================================================
# Ledger core primitive (locked)
# ============================================================

def _lock_item(item: Any) -> InventoryItem:
    """
    Select-for-update one inventory item.
    Row lock on PostgreSQL; SQLite serializes writers on the database.
    """
    try:
        return InventoryItem.objects.select_for_update().get(pk=_pk(item))
    except (InventoryItem.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Inventory item %(ref)s not found.") % {"ref": _pk(item)})


def _record_movement(
    *,
    item: InventoryItem,
    movement_type: str,
    quantity: int,
    from_location: str = "",
    to_location: str = "",
    reason: str = "",
    reference: str = "",
    adjustment: Optional[InventoryAdjustment] = None,
    actor: Optional["User"] = None,
) -> InventoryMovement:
    return InventoryMovement.objects.create(
        inventory_item=item,
        adjustment=adjustment,
        movement_type=movement_type,
        quantity=quantity,
        from_location=from_location,
        to_location=to_location,
        reason=reason,
        reference=reference,
        user=actor_or_none(actor),
    )


def _sync_material_stock(item: InventoryItem, delta: int) -> None:
    """Keep RawMaterial.current_stock_qty in step with MATERIAL adjustments."""
    if item.kind != InventoryItem.Kind.MATERIAL or not item.material_id:
        return

    RawMaterial.objects.filter(pk=item.material_id).update(
        current_stock_qty=F("current_stock_qty") + delta,
        updated_at=timezone.now(),
    )
    material = RawMaterial.objects.only("sku", "current_stock_qty", "reorder_point").get(pk=item.material_id)

    before = material.current_stock_qty - delta
    if material.reorder_point > 0 and before >= material.reorder_point > material.current_stock_qty:
        event = MaterialStockLow(
            material_id=material.pk,
            sku=material.sku,
            current_stock_qty=material.current_stock_qty,
            reorder_point=material.reorder_point,
        )
        transaction.on_commit(lambda: emit(event))


def _apply_adjustment_locked(
    *,
    item: InventoryItem,
    delta: int,
    reason: str,
    adjustment_type: str,
    related_entity_type: str = "",
    related_entity_id: Any = "",
    reference: str = "",
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """
    Write path shared by every quantity change. ``item`` must already be
    locked by the caller inside an atomic block.
    """
    new_quantity = item.quantity_on_hand + delta
    if new_quantity < 0:
        raise InvalidOperation(
            _("Adjustment would result in negative on-hand quantity (%(qty)s).") % {"qty": new_quantity}
        )
    if new_quantity < item.quantity_reserved:
        raise InvalidOperation(
            _("Adjustment would drop on-hand below reserved quantity (%(reserved)s).")
            % {"reserved": item.quantity_reserved}
        )

    adjustment = InventoryAdjustment.objects.create(
        inventory_item=item,
        delta_qty=delta,
        reason=reason,
        adjustment_type=adjustment_type,
        related_entity_type=related_entity_type or "",
        related_entity_id=str(related_entity_id or ""),
        created_by=actor_or_none(actor),
    )

    InventoryItem.objects.filter(pk=item.pk).update(
        quantity_on_hand=F("quantity_on_hand") + delta,
        updated_at=timezone.now(),
    )
    item.refresh_from_db(fields=["quantity_on_hand", "updated_at"])

    _sync_material_stock(item, delta)

    location_name = item.location.name
    if from_location is None and to_location is None:
        if delta > 0:
            from_location, to_location = "", location_name
        else:
            from_location, to_location = location_name, ""

    movement = _record_movement(
        item=item,
        movement_type=movement_type_for(adjustment_type),
        quantity=delta,
        from_location=from_location or "",
        to_location=to_location or "",
        reason=reason,
        reference=reference,
        adjustment=adjustment,
        actor=actor,
    )

    log_event(
        action=AuditLog.Action.STOCK_ADJUSTMENT,
        message=_("Inventory adjusted by %(delta)s (%(type)s).") % {"delta": delta, "type": adjustment_type},
        actor=actor,
        target=item,
        extra={
            "adjustment_id": adjustment.pk,
            "adjustment_type": str(adjustment_type),
            "delta_qty": delta,
            "quantity_on_hand": item.quantity_on_hand,
            "location": location_name,
            "related_entity_type": adjustment.related_entity_type,
            "related_entity_id": adjustment.related_entity_id,
        },
    )

    logger.info(
        "Adjusted inventory item %s by %s (%s), on hand now %s",
        item.pk,
        delta,
        adjustment_type,
        item.quantity_on_hand,
    )

    return AdjustmentResult(adjustment=adjustment, movement=movement, item=item)


# ============================================================
# Public API: adjustments
# ============================================================

@transaction.atomic
def apply_adjustment(
    *,
    item: Any,
    delta_qty: int,
    reason: str,
    adjustment_type: str,
    related_entity_type: str = "",
    related_entity_id: Any = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """
    The only legal way to change an item's quantity_on_hand.

    Writes the adjustment row, updates on-hand, keeps the material cache in
    step, writes the paired movement and an audit entry, all in one atomic unit.
    """
    delta = _validate_quantity(delta_qty, label="delta_qty", allow_negative=True)
    reason = _validate_reason(reason)
    _validate_choice(adjustment_type, AdjustmentType, "adjustment type")
    if related_entity_type:
        _validate_choice(related_entity_type, RelatedEntity, "related entity type")

    locked = _lock_item(item)
    return _apply_adjustment_locked(
        item=locked,
        delta=delta,
        reason=reason,
        adjustment_type=adjustment_type,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        reference=reference,
        actor=actor,
    )


def adjust_inventory(
    *,
    item: Any,
    delta_qty: int,
    reason: str,
    reference: str = "",
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """Manual stock correction (cycle count, breakage found on shelf, ...)."""
    return apply_adjustment(
        item=item,
        delta_qty=delta_qty,
        reason=reason,
        adjustment_type=AdjustmentType.MANUAL_CORRECTION,
        related_entity_type=RelatedEntity.INVENTORY_ITEM,
        related_entity_id=_pk(item),
        reference=reference,
        actor=actor,
    )


@transaction.atomic
def scrap_inventory(
    *,
    item: Any,
    quantity: int,
    reason: str,
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """
    Write off stock (typically quarantined output that failed QC).
    The item is marked SCRAPPED once nothing is left on hand.
    """
    quantity = _validate_quantity(quantity)
    reason = _validate_reason(reason)

    locked = _lock_item(item)
    result = _apply_adjustment_locked(
        item=locked,
        delta=-quantity,
        reason=reason,
        adjustment_type=AdjustmentType.PRODUCTION_SCRAP,
        related_entity_type=RelatedEntity.BATCH if locked.batch_id else RelatedEntity.INVENTORY_ITEM,
        related_entity_id=locked.batch_id or locked.pk,
        actor=actor,
    )

    if locked.quantity_on_hand == 0 and locked.status != InventoryItem.Status.SCRAPPED:
        locked.status = InventoryItem.Status.SCRAPPED
        locked.save(update_fields=["status", "updated_at"])

    return result


# ============================================================
# Public API: reservations
# ============================================================

def _reserve_locked(
    *,
    item: InventoryItem,
    quantity: int,
    reason: str = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> InventoryItem:
    if item.status != InventoryItem.Status.AVAILABLE:
        raise InvalidStatus(
            _("Cannot reserve stock from an item with status %(status)s.") % {"status": item.status}
        )

    available = item.available_quantity
    if quantity > available:
        raise InsufficientInventory(
            _("Only %(available)s units available to reserve") % {"available": available}
        )

    InventoryItem.objects.filter(pk=item.pk).update(
        quantity_reserved=F("quantity_reserved") + quantity,
        updated_at=timezone.now(),
    )
    item.refresh_from_db(fields=["quantity_reserved", "updated_at"])

    _record_movement(
        item=item,
        movement_type=MovementType.RESERVE,
        quantity=quantity,
        from_location=item.location.name,
        reason=reason or _("Stock reserved"),
        reference=reference,
        actor=actor,
    )
    log_event(
        action=AuditLog.Action.RESERVATION,
        message=_("Reserved %(qty)s units.") % {"qty": quantity},
        actor=actor,
        target=item,
        extra={
            "delta_reserved": quantity,
            "quantity_reserved": item.quantity_reserved,
            "reference": reference,
        },
    )
    logger.info("Reserved %s on inventory item %s (reserved now %s)", quantity, item.pk, item.quantity_reserved)
    return item


@transaction.atomic
def reserve(
    *,
    item: Any,
    quantity: int,
    reason: str = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> InventoryItem:
    """
    Commit part of the available quantity without touching on-hand.
    Fails with InsufficientInventory when quantity > on_hand - reserved.
    """
    quantity = _validate_quantity(quantity)
    locked = _lock_item(item)
    return _reserve_locked(item=locked, quantity=quantity, reason=reason, reference=reference, actor=actor)


@transaction.atomic
def release(
    *,
    item: Any,
    quantity: int,
    reason: str = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> InventoryItem:
    """Give back previously reserved quantity."""
    quantity = _validate_quantity(quantity)
    locked = _lock_item(item)

    if quantity > locked.quantity_reserved:
        raise InvalidOperation(
            _("Cannot release %(qty)s - only %(reserved)s reserved")
            % {"qty": quantity, "reserved": locked.quantity_reserved}
        )

    InventoryItem.objects.filter(pk=locked.pk).update(
        quantity_reserved=F("quantity_reserved") - quantity,
        updated_at=timezone.now(),
    )
    locked.refresh_from_db(fields=["quantity_reserved", "updated_at"])

    _record_movement(
        item=locked,
        movement_type=MovementType.RELEASE,
        quantity=quantity,
        to_location=locked.location.name,
        reason=reason or _("Reservation released"),
        reference=reference,
        actor=actor,
    )
    log_event(
        action=AuditLog.Action.RESERVATION,
        message=_("Released %(qty)s reserved units.") % {"qty": quantity},
        actor=actor,
        target=locked,
        extra={
            "delta_reserved": -quantity,
            "quantity_reserved": locked.quantity_reserved,
            "reference": reference,
        },
    )
    logger.info("Released %s on inventory item %s (reserved now %s)", quantity, locked.pk, locked.quantity_reserved)
    return locked


# ============================================================
# Public API: FIFO consumption
# ============================================================

def consume_material(
    *,
    material: Any,
    quantity: int,
    reason: str = "",
    related_entity_type: str = "",
    related_entity_id: Any = "",
    reference: str = "",
    on_lot_consumed: Optional[Callable[[ConsumedLot], None]] = None,
    actor: Optional["User"] = None,
) -> ConsumptionResult:
    """
    Consume ``quantity`` of a material from its lots, oldest expiry first.

    Each lot is decremented in its own atomic step, so an interruption
    leaves the lots already consumed fully recorded. Running out of stock
    is reported through ``ConsumptionResult.shortage``, not raised.

    ``on_lot_consumed`` runs inside each lot's atomic step, so callers
    can keep their own counters committed together with the ledger.
    """
    quantity = _validate_quantity(quantity)
    material = get_material(material)
    reason = (reason or "").strip() or _("Material consumption")

    result = ConsumptionResult(material_id=material.pk, requested=quantity)
    candidate_ids = list(InventoryItem.objects.fifo_candidates(material).values_list("pk", flat=True))

    for item_id in candidate_ids:
        remaining = quantity - result.consumed_total
        if remaining <= 0:
            break

        with transaction.atomic():
            locked = _lock_item(item_id)
            # Re-check under the lock; a concurrent writer may have changed the lot.
            if locked.status != InventoryItem.Status.AVAILABLE:
                continue
            take = min(locked.available_quantity, remaining)
            if take <= 0:
                continue

            adjusted = _apply_adjustment_locked(
                item=locked,
                delta=-take,
                reason=reason,
                adjustment_type=AdjustmentType.CONSUMPTION,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                reference=reference,
                actor=actor,
            )
            lot = ConsumedLot(
                item_id=locked.pk,
                lot_number=locked.lot_number,
                location=locked.location.name,
                expiry_date=locked.expiry_date,
                quantity=take,
                adjustment_id=adjusted.adjustment.pk,
            )
            if on_lot_consumed is not None:
                on_lot_consumed(lot)

        result.consumed_total += take
        result.lots.append(lot)

    if not result.is_complete:
        logger.warning(
            "Consumption of material %s short by %s (requested %s, consumed %s)",
            material.sku,
            result.shortage,
            quantity,
            result.consumed_total,
        )
        event = MaterialShortage(
            material_id=material.pk,
            sku=material.sku,
            requested=quantity,
            consumed=result.consumed_total,
        )
        transaction.on_commit(lambda: emit(event))

    return result


# ============================================================
# Public API: receiving / producing / moving
# ============================================================

def resolve_receiving_location(material: RawMaterial, location: Any = None) -> Location:
    """
    Explicit location, else the material's default location, else the
    system default receiving location. The resolved location must be active.
    """
    if location is not None:
        resolved = get_location(location)
    elif material.default_location_id:
        resolved = material.default_location
    else:
        resolved = Location.objects.default_receiving()

    if resolved is None:
        raise LocationValidationError(
            _(
                "No receiving location configured. Set a default location on the material "
                "or mark a location as the default receiving location."
            )
        )
    return _ensure_active_location(resolved)


@transaction.atomic
def receive_material(
    *,
    material: Any,
    quantity: int,
    location: Any = None,
    lot_number: str = "",
    expiry_date: Optional[date] = None,
    unit_cost: Optional[Decimal] = None,
    source: str = InventoryItem.Source.PURCHASE_ORDER,
    reason: str = "",
    reference: str = "",
    related_entity_type: str = RelatedEntity.PURCHASE_ORDER,
    related_entity_id: Any = "",
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """Receive material into stock (from a purchase order or a manual receipt)."""
    quantity = _validate_quantity(quantity)
    material = get_material(material)
    _validate_choice(source, InventoryItem.Source, "source")
    target_location = resolve_receiving_location(material, location)

    item, created = InventoryItem.objects.select_for_update().get_or_create(
        kind=InventoryItem.Kind.MATERIAL,
        material=material,
        location=target_location,
        lot_number=lot_number or "",
        expiry_date=expiry_date,
        status=InventoryItem.Status.AVAILABLE,
        defaults={
            "unit_of_measure": material.unit_of_measure,
            "unit_cost": unit_cost if unit_cost is not None else material.cost_per_unit,
            "source": source,
        },
    )
    if created:
        logger.info("Created inventory item %s for material %s at %s", item.pk, material.sku, target_location)

    if not reason:
        reason = _("Received %(qty)s %(sku)s") % {"qty": quantity, "sku": material.sku}
        if reference:
            reason = f"{reason} ({reference})"

    return _apply_adjustment_locked(
        item=item,
        delta=quantity,
        reason=reason,
        adjustment_type=AdjustmentType.RECEIVING,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        reference=reference,
        actor=actor,
    )


@transaction.atomic
def produce_finished_goods(
    *,
    product: Any,
    quantity: int,
    location: Any,
    batch=None,
    status: str = InventoryItem.Status.AVAILABLE,
    lot_number: str = "",
    expiry_date: Optional[date] = None,
    unit_cost: Optional[Decimal] = None,
    reason: str = "",
    related_entity_type: str = "",
    related_entity_id: Any = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> AdjustmentResult:
    """
    Add finished goods to the (product, batch, location, lot, expiry, status)
    item, creating it on first production.
    """
    quantity = _validate_quantity(quantity)
    product = get_product(product)
    target_location = _ensure_active_location(get_location(location))
    _validate_choice(status, InventoryItem.Status, "status")

    if batch is not None:
        lot_number = lot_number or batch.batch_code
        expiry_date = expiry_date or batch.expiration_date
        related_entity_type = related_entity_type or RelatedEntity.BATCH
        related_entity_id = related_entity_id or batch.pk

    item, _created = InventoryItem.objects.select_for_update().get_or_create(
        kind=InventoryItem.Kind.PRODUCT,
        product=product,
        batch=batch,
        location=target_location,
        lot_number=lot_number or "",
        expiry_date=expiry_date,
        status=status,
        defaults={
            "unit_of_measure": product.unit_of_measure,
            "unit_cost": unit_cost,
            "source": InventoryItem.Source.PRODUCTION,
        },
    )

    if not reason:
        reason = _("Produced %(qty)s %(sku)s") % {"qty": quantity, "sku": product.sku}
        if batch is not None:
            reason = f"{reason} ({batch.batch_code})"

    return _apply_adjustment_locked(
        item=item,
        delta=quantity,
        reason=reason,
        adjustment_type=AdjustmentType.PRODUCTION_COMPLETE,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        reference=reference or (batch.batch_code if batch is not None else ""),
        actor=actor,
    )


@transaction.atomic
def move_inventory(
    *,
    item: Any,
    quantity: int,
    to_location: Any,
    reason: str = "",
    reference: str = "",
    actor: Optional["User"] = None,
) -> MoveResult:
    """
    Move available quantity of an item to another location.

    Both rows are locked together in primary-key order, so opposite moves
    between the same two items cannot deadlock. Both sides are recorded
    as TRANSFER adjustments.
    """
    quantity = _validate_quantity(quantity)
    destination_location = _ensure_active_location(get_location(to_location))

    try:
        source = InventoryItem.objects.get(pk=_pk(item))
    except (InventoryItem.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Inventory item %(ref)s not found.") % {"ref": _pk(item)})
    if source.location_id == destination_location.pk:
        raise InvalidInput(_("Source and destination locations are the same."))

    destination, _created = InventoryItem.objects.get_or_create(
        kind=source.kind,
        material_id=source.material_id,
        product_id=source.product_id,
        batch_id=source.batch_id,
        location=destination_location,
        lot_number=source.lot_number,
        expiry_date=source.expiry_date,
        status=source.status,
        defaults={
            "unit_of_measure": source.unit_of_measure,
            "unit_cost": source.unit_cost,
            "source": source.source,
        },
    )

    locked = {
        row.pk: row
        for row in InventoryItem.objects.select_for_update().filter(pk__in=[source.pk, destination.pk]).order_by("pk")
    }
    source, destination = locked[source.pk], locked[destination.pk]

    if quantity > source.available_quantity:
        raise InsufficientInventory(
            _("Only %(available)s units available to move (%(reserved)s reserved)")
            % {"available": source.available_quantity, "reserved": source.quantity_reserved}
        )

    from_name = source.location.name
    to_name = destination_location.name
    reason = (reason or "").strip() or _("Moved from %(src)s to %(dst)s") % {"src": from_name, "dst": to_name}

    common = {
        "reason": reason,
        "adjustment_type": AdjustmentType.TRANSFER,
        "related_entity_type": RelatedEntity.INVENTORY_ITEM,
        "related_entity_id": source.pk,
        "reference": reference,
        "from_location": from_name,
        "to_location": to_name,
        "actor": actor,
    }
    _apply_adjustment_locked(item=source, delta=-quantity, **common)
    _apply_adjustment_locked(item=destination, delta=quantity, **common)

    return MoveResult(source=source, destination=destination, quantity=quantity)


# ============================================================
# Quarantine (used by the QC gate)
# ============================================================

def _change_items_status(
    *,
    items,
    from_statuses: Iterable[str],
    to_status: str,
    message: str,
    target: Any = None,
    actor: Optional["User"] = None,
) -> int:
    qs = items.select_for_update().filter(status__in=list(from_statuses))
    item_ids = list(qs.values_list("pk", flat=True))
    if not item_ids:
        return 0

    InventoryItem.objects.filter(pk__in=item_ids).update(status=to_status, updated_at=timezone.now())
    log_event(
        action=AuditLog.Action.STATUS_CHANGE,
        message=message,
        actor=actor,
        target=target,
        extra={"item_ids": item_ids, "status": str(to_status)},
    )
    logger.info("Set %d inventory item(s) to %s", len(item_ids), to_status)
    return len(item_ids)


def quarantine_batch_items(batch, *, actor: Optional["User"] = None) -> int:
    """Move every AVAILABLE item of ``batch`` to QUARANTINED."""
    return _change_items_status(
        items=InventoryItem.objects.for_batch(batch),
        from_statuses=[InventoryItem.Status.AVAILABLE],
        to_status=InventoryItem.Status.QUARANTINED,
        message=_("Batch %(code)s quarantined.") % {"code": batch.batch_code},
        target=batch,
        actor=actor,
    )


def release_batch_quarantine(batch, *, actor: Optional["User"] = None) -> int:
    """Return every QUARANTINED item of ``batch`` to AVAILABLE."""
    return _change_items_status(
        items=InventoryItem.objects.for_batch(batch),
        from_statuses=[InventoryItem.Status.QUARANTINED],
        to_status=InventoryItem.Status.AVAILABLE,
        message=_("Batch %(code)s released from quarantine.") % {"code": batch.batch_code},
        target=batch,
        actor=actor,
    )


# ============================================================
# Retail allocation
# ============================================================

@transaction.atomic
def allocate_product(
    *,
    product: Any,
    quantity: int,
    reference: str = "",
    actor: Optional["User"] = None,
) -> AllocationResult:
    """
    Reserve ``quantity`` of a finished product across its available items,
    oldest batch first. Nothing is reserved unless the whole quantity fits.
    """
    quantity = _validate_quantity(quantity)
    product = get_product(product)

    # Lock in primary-key order, allocate in batch order.
    candidate_ids = list(InventoryItem.objects.allocation_candidates(product).values_list("pk", flat=True))
    locked = {
        row.pk: row
        for row in InventoryItem.objects.select_for_update().filter(pk__in=candidate_ids).order_by("pk")
    }
    candidates = [
        locked[pk]
        for pk in candidate_ids
        if pk in locked and locked[pk].status == InventoryItem.Status.AVAILABLE
    ]
    total_available = sum(item.available_quantity for item in candidates)
    if total_available < quantity:
        raise InsufficientInventory(
            _("Only %(available)s units of %(product)s available to allocate")
            % {"available": total_available, "product": product.name}
        )

    lines: List[AllocationLine] = []
    remaining = quantity
    for item in candidates:
        if remaining <= 0:
            break
        take = min(item.available_quantity, remaining)
        if take <= 0:
            continue
        _reserve_locked(
            item=item,
            quantity=take,
            reason=_("Allocated to %(ref)s") % {"ref": reference} if reference else _("Allocated"),
            reference=reference,
            actor=actor,
        )
        lines.append(AllocationLine(item_id=item.pk, quantity=take))
        remaining -= take

    return AllocationResult(product_id=product.pk, quantity=quantity, reference=reference, lines=lines)


@transaction.atomic
def release_allocation(
    *,
    allocation: AllocationResult,
    reason: str = "",
    actor: Optional["User"] = None,
) -> None:
    for line in sorted(allocation.lines, key=lambda ln: ln.item_id):
        release(
            item=line.item_id,
            quantity=line.quantity,
            reason=reason or _("Allocation released"),
            reference=allocation.reference,
            actor=actor,
        )


# ============================================================
# Availability helpers
# ============================================================

def get_available_quantity(item: Any) -> int:
    row = InventoryItem.objects.filter(pk=_pk(item)).values("quantity_on_hand", "quantity_reserved").first()
    if row is None:
        raise NotFound(_("Inventory item %(ref)s not found.") % {"ref": _pk(item)})
    return row["quantity_on_hand"] - row["quantity_reserved"]


def get_available_material_stock(material: Any) -> int:
    return (
        InventoryItem.objects.materials()
        .filter(material_id=_pk(material))
        .available_status()
        .total_available()
    )


def get_available_product_stock(product: Any) -> int:
    return (
        InventoryItem.objects.products()
        .filter(product_id=_pk(product))
        .available_status()
        .total_available()
    )
