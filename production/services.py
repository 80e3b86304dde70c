# production/services.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional, TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone
from django.utils.translation import gettext as _

from core.exceptions import (
    InvalidInput,
    InvalidOperation,
    InvalidStatus,
    LocationValidationError,
    NotFound,
)
from core.models import AuditLog, actor_or_none
from core.services.audit import log_event
from inventory.models import InventoryAdjustment, InventoryItem, InventorySettings
from inventory.services import (
    ConsumedLot,
    consume_material,
    get_available_material_stock,
    get_location,
    get_material,
    get_product,
    produce_finished_goods,
    quarantine_batch_items,
    release_batch_quarantine,
)

from .models import Batch, BatchMaker, LaborEntry, ProductionOrder, ProductionOrderMaterial, ProductionOrderStep

if TYPE_CHECKING:
    User = get_user_model()

logger = logging.getLogger(__name__)

OrderStatus = ProductionOrder.Status
BatchStatus = Batch.Status
QCStatus = Batch.QCStatus

DEFAULT_INSTRUCTION_STEPS = [
    {"title": "Preparation", "instructions": "Sanitize equipment and stage the issued materials."},
    {"title": "Production", "instructions": "Run the batch according to the product recipe."},
    {"title": "Quality check", "instructions": "Sample the output and record the QC decision."},
    {"title": "Packaging", "instructions": "Package and label the finished goods."},
]


@dataclass(frozen=True)
class MaterialIssue:
    material: Any
    quantity: int


@dataclass(frozen=True)
class IssuedMaterial:
    material_id: int
    sku: str
    requested: int
    issued: int
    lots: List[ConsumedLot] = field(default_factory=list)

    @property
    def shortage(self) -> int:
        return self.requested - self.issued


@dataclass(frozen=True)
class BatchCompletion:
    batch: Batch
    item: Optional[InventoryItem]
    adjustment: Optional[InventoryAdjustment]


@dataclass(frozen=True)
class LaborSummary:
    entries: List[LaborEntry]
    total_minutes: int

    @property
    def total_hours(self) -> Decimal:
        return (Decimal(self.total_minutes) / 60).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ============================================================
# Helpers
# ============================================================

def _whole_number(value: Any, label: str, *, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(_("%(label)s must be a whole number, got %(value)r.") % {"label": label, "value": value})
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidInput(_("%(label)s must be positive.") % {"label": label})
    return value


def _lock_order(order: Any) -> ProductionOrder:
    pk = getattr(order, "pk", order)
    try:
        return ProductionOrder.objects.select_for_update().get(pk=pk)
    except (ProductionOrder.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Production order %(ref)s not found.") % {"ref": pk})


def _lock_batch(batch: Any) -> Batch:
    pk = getattr(batch, "pk", batch)
    try:
        return Batch.objects.select_for_update().get(pk=pk)
    except (Batch.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Batch %(ref)s not found.") % {"ref": pk})


def get_order(order: Any) -> ProductionOrder:
    if isinstance(order, ProductionOrder):
        return order
    try:
        return ProductionOrder.objects.get(pk=order)
    except (ProductionOrder.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Production order %(ref)s not found.") % {"ref": order})


def get_batch(batch: Any) -> Batch:
    if isinstance(batch, Batch):
        return batch
    try:
        return Batch.objects.get(pk=batch)
    except (Batch.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Batch %(ref)s not found.") % {"ref": batch})


def _log_order_status(order: ProductionOrder, old_status: str, actor, **extra) -> None:
    log_event(
        action=AuditLog.Action.STATUS_CHANGE,
        message=_("Production order %(number)s: %(old)s -> %(new)s")
        % {"number": order.order_number, "old": old_status, "new": order.status},
        actor=actor,
        target=order,
        extra={"old_status": str(old_status), "new_status": str(order.status), **extra},
    )
    logger.info("Production order %s moved %s -> %s", order.order_number, old_status, order.status)


def split_into_batches(quantity: int, batch_size: int) -> List[int]:
    """``ceil(quantity / batch_size)`` batch sizes, the last one taking the remainder."""
    full, remainder = divmod(quantity, batch_size)
    sizes = [batch_size] * full
    if remainder:
        sizes.append(remainder)
    return sizes


# ============================================================
# Material requirements
# ============================================================

def _calculate_requirements(order: ProductionOrder) -> List[dict]:
    """
    Recompute requirement rows from the active BOM and current availability,
    then overwrite the JSON snapshot. ``issued_qty`` is preserved.
    """
    snapshot: List[dict] = []
    material_ids = []

    for line in order.product.active_bom_items():
        required = line.required_for(order.quantity_to_make)
        available = get_available_material_stock(line.material)
        shortage = max(0, required - available)

        row, _created = ProductionOrderMaterial.objects.update_or_create(
            order=order,
            material=line.material,
            defaults={
                "required_qty": required,
                "available_qty": available,
                "shortage_qty": shortage,
            },
        )
        material_ids.append(line.material_id)
        snapshot.append(
            {
                "material_id": line.material_id,
                "sku": line.material.sku,
                "name": line.material.name,
                "unit_of_measure": line.material.unit_of_measure,
                "quantity_per_unit": str(line.quantity_per_unit),
                "bom_version": line.version,
                "required_qty": required,
                "available_qty": available,
                "shortage_qty": shortage,
                "issued_qty": row.issued_qty,
            }
        )

    # Materials dropped from the BOM are forgotten unless something was already issued.
    ProductionOrderMaterial.objects.filter(order=order, issued_qty=0).exclude(
        material_id__in=material_ids
    ).delete()

    order.material_requirements = snapshot
    order.requirements_calculated_at = timezone.now()
    order.save(update_fields=["material_requirements", "requirements_calculated_at", "updated_at"])
    return snapshot


@transaction.atomic
def calculate_material_requirements(*, order: Any, actor: Optional["User"] = None) -> List[dict]:
    order = _lock_order(order)
    if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        raise InvalidStatus(
            _("Cannot recalculate requirements for order in %(status)s status") % {"status": order.status}
        )
    snapshot = _calculate_requirements(order)
    log_event(
        action=AuditLog.Action.UPDATE,
        message=_("Material requirements recalculated."),
        actor=actor,
        target=order,
        extra={"materials": len(snapshot), "shortages": sum(1 for row in snapshot if row["shortage_qty"])},
    )
    return snapshot


# ============================================================
# Production order lifecycle
# ============================================================

@transaction.atomic
def create_production_order(
    *,
    product: Any,
    quantity_to_make: int,
    batch_size: Optional[int] = None,
    scheduled_date: Optional[date] = None,
    due_date: Optional[date] = None,
    notes: str = "",
    actor: Optional["User"] = None,
) -> ProductionOrder:
    quantity_to_make = _whole_number(quantity_to_make, "quantity_to_make")
    product = get_product(product)
    batch_size = batch_size if batch_size is not None else (product.default_batch_size or quantity_to_make)
    batch_size = _whole_number(batch_size, "batch_size")

    if not product.active_bom_items().exists():
        raise InvalidOperation(_("No BOM defined for this product"))

    order = ProductionOrder.objects.create(
        product=product,
        quantity_to_make=quantity_to_make,
        batch_size=batch_size,
        scheduled_date=scheduled_date,
        due_date=due_date,
        notes=notes,
        created_by=actor_or_none(actor),
    )
    _calculate_requirements(order)

    log_event(
        action=AuditLog.Action.CREATE,
        message=_("Production order %(number)s created.") % {"number": order.order_number},
        actor=actor,
        target=order,
        extra={"product": product.sku, "quantity_to_make": quantity_to_make, "batch_size": batch_size},
    )
    logger.info("Created production order %s for %s x %s", order.order_number, quantity_to_make, product.sku)
    return order


def _create_order_steps(order: ProductionOrder) -> None:
    sequence = 0
    for requirement in order.materials.select_related("material").order_by("material__name"):
        sequence += 1
        ProductionOrderStep.objects.create(
            order=order,
            sequence=sequence,
            step_type=ProductionOrderStep.StepType.MATERIAL_ISSUE,
            title=_("Issue %(name)s") % {"name": requirement.material.name},
            material=requirement.material,
            quantity=requirement.required_qty,
        )

    instruction_steps = order.product.manufacturing_steps or DEFAULT_INSTRUCTION_STEPS
    for step in instruction_steps:
        sequence += 1
        ProductionOrderStep.objects.create(
            order=order,
            sequence=sequence,
            step_type=ProductionOrderStep.StepType.INSTRUCTION,
            title=str(step.get("title") or _("Step %(n)s") % {"n": sequence}),
            instructions=str(step.get("instructions") or ""),
        )


@transaction.atomic
def start_production_order(*, order: Any, actor: Optional["User"] = None) -> ProductionOrder:
    """
    PLANNED -> IN_PROGRESS. Creates the batches (and work steps) on the
    first start and refreshes the requirement snapshot.
    """
    order = _lock_order(order)
    if order.status != OrderStatus.PLANNED:
        raise InvalidStatus(_("Cannot start order in %(status)s status") % {"status": order.status})
    if order.is_archived:
        raise InvalidStatus(_("Archived orders cannot be started."))

    old_status = order.status
    _calculate_requirements(order)

    if not order.batches.active().exists():
        for size in split_into_batches(order.quantity_to_make, order.batch_size):
            Batch.objects.create(
                product=order.product,
                production_order=order,
                planned_quantity=size,
                expected_yield=size,
                production_date=order.scheduled_date,
                created_by=actor_or_none(actor),
            )

    if not order.steps.exists():
        _create_order_steps(order)

    order.started_at = order.started_at or timezone.now()
    order.updated_by = actor_or_none(actor)
    order.change_state(OrderStatus.IN_PROGRESS, update_fields=["started_at", "updated_by"])
    _log_order_status(order, old_status, actor, batches=order.batches.active().count())
    return order


@transaction.atomic
def block_production_order(*, order: Any, reason: str = "", actor: Optional["User"] = None) -> ProductionOrder:
    order = _lock_order(order)
    if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        raise InvalidStatus(_("Cannot block order in %(status)s status") % {"status": order.status})

    old_status = order.status
    order.blocked_reason = (reason or "").strip()
    order.blocked_at = timezone.now()
    order.change_state(OrderStatus.BLOCKED, update_fields=["blocked_reason", "blocked_at"])
    _log_order_status(order, old_status, actor, reason=order.blocked_reason)
    return order


@transaction.atomic
def unblock_production_order(*, order: Any, actor: Optional["User"] = None) -> ProductionOrder:
    order = _lock_order(order)
    if order.status != OrderStatus.BLOCKED:
        raise InvalidStatus(_("Only blocked orders can be unblocked"))
    if order.is_archived:
        raise InvalidStatus(_("Archived orders cannot be unblocked"))

    old_status = order.status
    order.blocked_reason = ""
    order.blocked_at = None
    order.change_state(OrderStatus.PLANNED, update_fields=["blocked_reason", "blocked_at"])
    _log_order_status(order, old_status, actor)
    return order


@transaction.atomic
def archive_production_order(*, order: Any, reason: str, actor: Optional["User"] = None) -> ProductionOrder:
    """Hide a blocked order from active views. The status stays BLOCKED."""
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInput(_("An archive reason is required."))

    order = _lock_order(order)
    if order.status != OrderStatus.BLOCKED:
        raise InvalidStatus(_("Only blocked orders can be archived"))
    if order.is_archived:
        raise InvalidStatus(_("Order is already archived"))

    order.archived_at = timezone.now()
    order.archive_reason = reason
    order.save(update_fields=["archived_at", "archive_reason", "updated_at"])

    log_event(
        action=AuditLog.Action.UPDATE,
        message=_("Production order %(number)s archived.") % {"number": order.order_number},
        actor=actor,
        target=order,
        extra={"reason": reason},
    )
    return order


@transaction.atomic
def complete_production_order(*, order: Any, actor: Optional["User"] = None) -> ProductionOrder:
    order = _lock_order(order)
    if order.status != OrderStatus.IN_PROGRESS:
        raise InvalidStatus(_("Cannot complete order in %(status)s status") % {"status": order.status})

    if order.batches.unreleased().exists():
        raise InvalidStatus(_("Cannot complete order - not all batches are released"))

    old_status = order.status
    order.completed_at = timezone.now()
    order.change_state(OrderStatus.COMPLETED, update_fields=["completed_at"])
    _log_order_status(order, old_status, actor)
    return order


@transaction.atomic
def dismiss_production_order(*, order: Any, actor: Optional["User"] = None) -> ProductionOrder:
    """Hide a completed order from the board. The status stays COMPLETED."""
    order = _lock_order(order)
    if order.status != OrderStatus.COMPLETED:
        raise InvalidStatus(_("Only completed orders can be dismissed"))
    if order.is_dismissed:
        raise InvalidStatus(_("Order is already dismissed"))

    order.dismissed_at = timezone.now()
    order.save(update_fields=["dismissed_at", "updated_at"])
    log_event(
        action=AuditLog.Action.UPDATE,
        message=_("Production order %(number)s dismissed.") % {"number": order.order_number},
        actor=actor,
        target=order,
    )
    return order


@transaction.atomic
def cancel_production_order(*, order: Any, reason: str = "", actor: Optional["User"] = None) -> ProductionOrder:
    order = _lock_order(order)
    if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        raise InvalidStatus(_("Cannot cancel order in %(status)s status") % {"status": order.status})

    for batch in order.batches.filter(status__in=[BatchStatus.PLANNED, BatchStatus.IN_PROGRESS]).select_for_update():
        batch.change_state(BatchStatus.CANCELLED)

    old_status = order.status
    order.change_state(OrderStatus.CANCELLED)
    _log_order_status(order, old_status, actor, reason=(reason or "").strip())
    return order


@transaction.atomic
def update_production_order_progress(*, order: Any, actor: Optional["User"] = None) -> ProductionOrder:
    """
    Re-evaluate an order from its batches: PLANNED -> IN_PROGRESS once
    anything is released; -> COMPLETED once the released quantity covers
    the order and no active batch is still unreleased.
    """
    order = _lock_order(order)
    if order.status not in (OrderStatus.PLANNED, OrderStatus.IN_PROGRESS):
        return order

    batches = order.batches.active()
    released_total = batches.released().aggregate(total=Sum("actual_quantity"))["total"] or 0
    if released_total <= 0:
        return order

    if order.status == OrderStatus.PLANNED:
        old_status = order.status
        order.started_at = order.started_at or timezone.now()
        order.change_state(OrderStatus.IN_PROGRESS, update_fields=["started_at"])
        _log_order_status(order, old_status, actor, released_quantity=released_total)

    if released_total >= order.quantity_to_make and not batches.unreleased().exists():
        old_status = order.status
        order.completed_at = timezone.now()
        order.change_state(OrderStatus.COMPLETED, update_fields=["completed_at"])
        _log_order_status(order, old_status, actor, released_quantity=released_total)

    return order


@transaction.atomic
def complete_production_step(*, step: Any, actor: Optional["User"] = None) -> ProductionOrderStep:
    pk = getattr(step, "pk", step)
    try:
        step = ProductionOrderStep.objects.select_for_update().get(pk=pk)
    except (ProductionOrderStep.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("Production step %(ref)s not found.") % {"ref": pk})

    if step.status != ProductionOrderStep.Status.PENDING:
        raise InvalidStatus(_("Step is already %(status)s") % {"status": step.status})

    step.status = ProductionOrderStep.Status.DONE
    step.completed_at = timezone.now()
    step.save(update_fields=["status", "completed_at", "updated_at"])
    return step


# ============================================================
# Material issuance
# ============================================================

def _normalize_issue(line: Any) -> MaterialIssue:
    if isinstance(line, MaterialIssue):
        return line
    if isinstance(line, dict):
        if "material" not in line or "quantity" not in line:
            raise InvalidInput(_("Each issue line needs a material and a quantity."))
        return MaterialIssue(material=line["material"], quantity=line["quantity"])
    if isinstance(line, (list, tuple)) and len(line) == 2:
        return MaterialIssue(material=line[0], quantity=line[1])
    raise InvalidInput(_("Invalid issue line: %(line)r") % {"line": line})


def issue_materials(
    *,
    order: Any,
    issues: Iterable[Any],
    actor: Optional["User"] = None,
) -> List[IssuedMaterial]:
    """
    Consume requested materials for an order (FIFO per material) and add
    the consumed amounts to the order's issued quantities.

    Every line is validated before anything is consumed. A short lot
    supply is reported through ``IssuedMaterial.shortage``.
    """
    order = get_order(order)
    if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        raise InvalidStatus(_("Cannot issue materials to order in %(status)s status") % {"status": order.status})

    lines = [_normalize_issue(line) for line in issues]
    if not lines:
        raise InvalidInput(_("No materials to issue."))

    planned = []
    for line in lines:
        quantity = _whole_number(line.quantity, "quantity")
        material = get_material(line.material)
        requirement = ProductionOrderMaterial.objects.filter(order=order, material=material).first()
        if requirement is None:
            raise NotFound(
                _("Material %(sku)s is not part of production order %(number)s")
                % {"sku": material.sku, "number": order.order_number}
            )
        planned.append((material, quantity, requirement))

    issued: List[IssuedMaterial] = []
    for material, quantity, requirement in planned:
        def record_issue(lot: ConsumedLot, requirement=requirement, material=material) -> None:
            ProductionOrderMaterial.objects.filter(pk=requirement.pk).update(
                issued_qty=F("issued_qty") + lot.quantity,
                updated_at=timezone.now(),
            )
            requirement.refresh_from_db(fields=["issued_qty"])
            if requirement.issued_qty >= requirement.required_qty:
                ProductionOrderStep.objects.filter(
                    order=order,
                    material=material,
                    step_type=ProductionOrderStep.StepType.MATERIAL_ISSUE,
                    status=ProductionOrderStep.Status.PENDING,
                ).update(status=ProductionOrderStep.Status.DONE, completed_at=timezone.now())

        result = consume_material(
            material=material,
            quantity=quantity,
            reason=_("Issued to production order %(number)s") % {"number": order.order_number},
            related_entity_type=InventoryAdjustment.RelatedEntity.PRODUCTION_ORDER,
            related_entity_id=order.pk,
            reference=order.order_number,
            on_lot_consumed=record_issue,
            actor=actor,
        )

        issued.append(
            IssuedMaterial(
                material_id=material.pk,
                sku=material.sku,
                requested=quantity,
                issued=result.consumed_total,
                lots=list(result.lots),
            )
        )

    log_event(
        action=AuditLog.Action.UPDATE,
        message=_("Materials issued to %(number)s.") % {"number": order.order_number},
        actor=actor,
        target=order,
        extra={
            "lines": [
                {"material": line.sku, "requested": line.requested, "issued": line.issued}
                for line in issued
            ]
        },
    )
    return issued


# ============================================================
# Batches
# ============================================================

def _default_expiration(product, production_date: Optional[date]) -> Optional[date]:
    if product.shelf_life_days and production_date:
        return production_date + timedelta(days=product.shelf_life_days)
    return None


@transaction.atomic
def create_batch(
    *,
    product: Any,
    planned_quantity: int,
    production_order: Any = None,
    expected_yield: Optional[int] = None,
    production_date: Optional[date] = None,
    expiration_date: Optional[date] = None,
    notes: str = "",
    actor: Optional["User"] = None,
) -> Batch:
    planned_quantity = _whole_number(planned_quantity, "planned_quantity")
    if expected_yield is not None:
        expected_yield = _whole_number(expected_yield, "expected_yield", allow_zero=True)
    product = get_product(product)

    order = None
    if production_order is not None:
        order = _lock_order(production_order)
        if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            raise InvalidStatus(
                _("Cannot add batches to order in %(status)s status") % {"status": order.status}
            )
        if order.product_id != product.pk:
            raise InvalidInput(_("Batch product does not match the production order product."))

    batch = Batch.objects.create(
        product=product,
        production_order=order,
        planned_quantity=planned_quantity,
        expected_yield=expected_yield if expected_yield is not None else planned_quantity,
        production_date=production_date,
        expiration_date=expiration_date or _default_expiration(product, production_date),
        notes=notes,
        created_by=actor_or_none(actor),
    )
    log_event(
        action=AuditLog.Action.CREATE,
        message=_("Batch %(code)s created.") % {"code": batch.batch_code},
        actor=actor,
        target=batch,
        extra={"planned_quantity": planned_quantity, "order": order.order_number if order else None},
    )
    return batch


def _change_batch_status(batch: Batch, new_status: str, actor, *, update_fields=None, **extra) -> Batch:
    old_status = batch.status
    batch.updated_by = actor_or_none(actor)
    batch.change_state(new_status, update_fields=["updated_by", *(update_fields or [])])
    log_event(
        action=AuditLog.Action.STATUS_CHANGE,
        message=_("Batch %(code)s: %(old)s -> %(new)s")
        % {"code": batch.batch_code, "old": old_status, "new": new_status},
        actor=actor,
        target=batch,
        extra={"old_status": str(old_status), "new_status": str(new_status), **extra},
    )
    logger.info("Batch %s moved %s -> %s", batch.batch_code, old_status, new_status)
    return batch


@transaction.atomic
def start_batch(*, batch: Any, actor: Optional["User"] = None) -> Batch:
    batch = _lock_batch(batch)
    batch.started_at = timezone.now()
    return _change_batch_status(batch, BatchStatus.IN_PROGRESS, actor, update_fields=["started_at"])


@transaction.atomic
def cancel_batch(*, batch: Any, reason: str = "", actor: Optional["User"] = None) -> Batch:
    batch = _lock_batch(batch)
    if reason:
        batch.notes = f"{batch.notes}\n{reason}".strip()
    return _change_batch_status(batch, BatchStatus.CANCELLED, actor, update_fields=["notes"], reason=reason)


@transaction.atomic
def mark_batch_exhausted(*, batch: Any, actor: Optional["User"] = None) -> Batch:
    batch = _lock_batch(batch)
    batch.ensure_transition(BatchStatus.EXHAUSTED)

    remaining = InventoryItem.objects.for_batch(batch).aggregate(total=Sum("quantity_on_hand"))["total"] or 0
    if remaining > 0:
        raise InvalidOperation(
            _("Batch %(code)s still has %(qty)s units on hand") % {"code": batch.batch_code, "qty": remaining}
        )
    return _change_batch_status(batch, BatchStatus.EXHAUSTED, actor)


def update_batch_status(*, batch: Any, status: str, reason: str = "", actor: Optional["User"] = None) -> Batch:
    """
    Generic status entry point. QC_HOLD and RELEASED are only reachable
    through complete_batch() and QC decisions.
    """
    if status == BatchStatus.IN_PROGRESS:
        return start_batch(batch=batch, actor=actor)
    if status == BatchStatus.CANCELLED:
        return cancel_batch(batch=batch, reason=reason, actor=actor)
    if status == BatchStatus.EXHAUSTED:
        return mark_batch_exhausted(batch=batch, actor=actor)
    if status in (BatchStatus.QC_HOLD, BatchStatus.RELEASED):
        raise InvalidOperation(_("Batches reach %(status)s through completion and QC decisions.") % {"status": status})
    raise InvalidInput(_("Unknown batch status: %(status)s") % {"status": status})


def _resolve_output_location(batch: Batch, location: Any):
    if location is not None:
        resolved = get_location(location)
    else:
        resolved = batch.product.default_location
    if resolved is None:
        raise LocationValidationError(
            _("No location given and product %(sku)s has no default location.") % {"sku": batch.product.sku}
        )
    if not resolved.is_active:
        raise LocationValidationError(
            _('Location "%(name)s" is inactive. Choose an active location.') % {"name": resolved.name}
        )
    return resolved


def complete_batch(
    *,
    batch: Any,
    actual_quantity: int,
    location: Any = None,
    qc_required: Optional[bool] = None,
    expected_yield: Optional[int] = None,
    loss_qty: Optional[int] = None,
    loss_reason: str = "",
    production_date: Optional[date] = None,
    expiration_date: Optional[date] = None,
    unit_cost: Optional[Decimal] = None,
    notes: str = "",
    actor: Optional["User"] = None,
) -> BatchCompletion:
    """
    Record a batch's output and put it into finished-goods stock.

    With QC required the batch goes to QC_HOLD and the produced item is
    created QUARANTINED in the same atomic unit; otherwise the batch is
    RELEASED and the stock is AVAILABLE. The parent order's progress is
    re-evaluated afterwards.
    """
    actual_quantity = _whole_number(actual_quantity, "actual_quantity", allow_zero=True)
    if expected_yield is not None:
        expected_yield = _whole_number(expected_yield, "expected_yield", allow_zero=True)
    if loss_qty is not None:
        loss_qty = _whole_number(loss_qty, "loss_qty", allow_zero=True)
    if qc_required is None:
        qc_required = InventorySettings.get_solo().default_qc_required

    batch = get_batch(batch)
    output_location = _resolve_output_location(batch, location)

    with transaction.atomic():
        batch = _lock_batch(batch)
        if batch.status in (BatchStatus.RELEASED, BatchStatus.EXHAUSTED, BatchStatus.QC_HOLD):
            raise InvalidStatus(
                _("Batch %(code)s is already completed (%(status)s)")
                % {"code": batch.batch_code, "status": batch.status}
            )
        if batch.status == BatchStatus.CANCELLED:
            raise InvalidStatus(_("Cannot complete cancelled batch %(code)s") % {"code": batch.batch_code})

        expected = expected_yield if expected_yield is not None else (
            batch.expected_yield if batch.expected_yield is not None else batch.planned_quantity
        )
        now = timezone.now()

        batch.actual_quantity = actual_quantity
        batch.actual_yield = actual_quantity
        batch.expected_yield = expected
        batch.loss_qty = loss_qty if loss_qty is not None else max(0, expected - actual_quantity)
        batch.loss_reason = loss_reason or batch.loss_reason
        batch.production_date = production_date or batch.production_date or timezone.localdate()
        batch.expiration_date = (
            expiration_date
            or batch.expiration_date
            or _default_expiration(batch.product, batch.production_date)
        )
        batch.completed_at = now
        if notes:
            batch.notes = f"{batch.notes}\n{notes}".strip()
        batch.qc_status = QCStatus.PENDING if qc_required else QCStatus.NOT_REQUIRED

        new_status = BatchStatus.QC_HOLD if qc_required else BatchStatus.RELEASED
        _change_batch_status(
            batch,
            new_status,
            actor,
            update_fields=[
                "actual_quantity",
                "actual_yield",
                "expected_yield",
                "loss_qty",
                "loss_reason",
                "production_date",
                "expiration_date",
                "completed_at",
                "notes",
                "qc_status",
            ],
            actual_quantity=actual_quantity,
            loss_qty=batch.loss_qty,
        )

        item = None
        adjustment = None
        if actual_quantity > 0:
            produced = produce_finished_goods(
                product=batch.product,
                quantity=actual_quantity,
                location=output_location,
                batch=batch,
                status=InventoryItem.Status.QUARANTINED if qc_required else InventoryItem.Status.AVAILABLE,
                unit_cost=unit_cost,
                related_entity_type=InventoryAdjustment.RelatedEntity.BATCH,
                related_entity_id=batch.pk,
                reference=batch.batch_code,
                actor=actor,
            )
            item, adjustment = produced.item, produced.adjustment

    if batch.production_order_id:
        update_production_order_progress(order=batch.production_order_id, actor=actor)

    return BatchCompletion(batch=batch, item=item, adjustment=adjustment)


# ============================================================
# QC gate
# ============================================================

QC_DECISIONS = (QCStatus.PENDING, QCStatus.HOLD, QCStatus.PASSED, QCStatus.FAILED)


def set_batch_qc_status(
    *,
    batch: Any,
    qc_status: str,
    notes: str = "",
    actor: Optional["User"] = None,
) -> Batch:
    """
    HOLD / FAILED quarantine every available item of the batch.
    PASSED returns quarantined items to AVAILABLE and releases a batch in
    QC_HOLD. This is the only way quarantined stock becomes usable again.
    """
    if qc_status not in QC_DECISIONS:
        raise InvalidInput(_("Invalid QC status: %(status)s") % {"status": qc_status})

    with transaction.atomic():
        batch = _lock_batch(batch)
        if batch.status == BatchStatus.CANCELLED:
            raise InvalidStatus(_("Cannot record QC for cancelled batch %(code)s") % {"code": batch.batch_code})

        old_qc_status = batch.qc_status
        batch.qc_status = qc_status
        batch.qc_decided_at = timezone.now()
        if notes:
            batch.qc_notes = notes
        batch.updated_by = actor_or_none(actor)

        affected = 0
        if qc_status in (QCStatus.HOLD, QCStatus.FAILED):
            affected = quarantine_batch_items(batch, actor=actor)
        elif qc_status == QCStatus.PASSED:
            affected = release_batch_quarantine(batch, actor=actor)

        qc_fields = ["qc_status", "qc_decided_at", "qc_notes", "updated_by"]
        if qc_status == QCStatus.PASSED and batch.status == BatchStatus.QC_HOLD:
            batch.change_state(BatchStatus.RELEASED, update_fields=qc_fields)
        else:
            batch.save(update_fields=[*qc_fields, "updated_at"])

        log_event(
            action=AuditLog.Action.QC_DECISION,
            message=_("QC for batch %(code)s: %(old)s -> %(new)s")
            % {"code": batch.batch_code, "old": old_qc_status, "new": qc_status},
            actor=actor,
            target=batch,
            extra={"items_affected": affected, "batch_status": str(batch.status), "notes": notes},
        )
        logger.info("QC decision %s recorded for batch %s (%d items)", qc_status, batch.batch_code, affected)

    if qc_status == QCStatus.PASSED and batch.production_order_id:
        update_production_order_progress(order=batch.production_order_id, actor=actor)

    return batch


# ============================================================
# Labor and makers
# ============================================================

def _get_user(user: Any):
    UserModel = get_user_model()
    if isinstance(user, UserModel):
        return user
    try:
        return UserModel.objects.get(pk=user)
    except (UserModel.DoesNotExist, ValueError, TypeError):
        raise NotFound(_("User %(ref)s not found.") % {"ref": user})


@transaction.atomic
def add_labor_entry(
    *,
    batch: Any,
    worker: Any,
    minutes: int,
    role: str = "",
    notes: str = "",
    actor: Optional["User"] = None,
) -> LaborEntry:
    minutes = _whole_number(minutes, "minutes")
    batch = get_batch(batch)
    worker = _get_user(worker)

    entry = LaborEntry.objects.create(
        batch=batch,
        worker=worker,
        minutes=minutes,
        role=(role or "").strip(),
        notes=(notes or "").strip(),
        logged_by=actor_or_none(actor),
    )
    log_event(
        action=AuditLog.Action.LABOR_LOGGED,
        message=_("%(minutes)s minutes of labor logged for %(worker)s on batch %(code)s.")
        % {"minutes": minutes, "worker": worker.get_username(), "code": batch.batch_code},
        actor=actor,
        target=batch,
        extra={"labor_entry_id": entry.pk, "worker": worker.get_username(), "minutes": minutes, "role": entry.role},
    )
    return entry


def get_labor_entries(batch: Any) -> LaborSummary:
    """Labor on a batch, newest first, with the total in minutes and hours."""
    batch = get_batch(batch)
    entries = list(batch.labor_entries.select_related("worker"))
    return LaborSummary(entries=entries, total_minutes=sum(entry.minutes for entry in entries))


@transaction.atomic
def assign_makers(*, batch: Any, makers: Iterable[Any], actor: Optional["User"] = None) -> List[BatchMaker]:
    """Replace the set of makers assigned to a batch."""
    batch = _lock_batch(batch)

    users = []
    for maker in makers:
        user = _get_user(maker)
        if user.pk not in {u.pk for u in users}:
            users.append(user)

    before = list(batch.makers.order_by("pk").values_list("user_id", flat=True))
    batch.makers.all().delete()
    assigned = BatchMaker.objects.bulk_create([BatchMaker(batch=batch, user=user) for user in users])

    log_event(
        action=AuditLog.Action.MAKERS_ASSIGNED,
        message=_("Makers assigned to batch %(code)s: %(names)s")
        % {"code": batch.batch_code, "names": ", ".join(user.get_username() for user in users) or "-"},
        actor=actor,
        target=batch,
        extra={"before": before, "after": [user.pk for user in users]},
    )
    return assigned
