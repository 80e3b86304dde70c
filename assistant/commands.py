# assistant/commands.py
"""
Typed commands for the operator assistant.

The assistant turns free text into one of the command records below
(``{"command": "receive_material", "material": 3, "quantity": 500, ...}``),
``parse_command`` validates that payload into a frozen dataclass, and
``execute_command`` runs it through the same public inventory and
production services every other caller uses.
"""

from __future__ import annotations

import logging
from dataclasses import MISSING, dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation as DecimalError
from typing import Any, Dict, Optional, Tuple, Type, Union

from django.utils.dateparse import parse_date

from core.exceptions import InvalidInput, OperationError
from inventory import services as inventory_services
from production import services as production_services

logger = logging.getLogger(__name__)


# ============================================================
# Command records
# ============================================================

@dataclass(frozen=True, kw_only=True)
class ReceiveMaterialCommand:
    material: int
    quantity: int
    location: Optional[int] = None
    lot_number: str = ""
    expiry_date: Optional[date] = None
    unit_cost: Optional[Decimal] = None
    reference: str = ""
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class MoveInventoryCommand:
    item: int
    quantity: int
    to_location: int
    reason: str = ""
    reference: str = ""


@dataclass(frozen=True, kw_only=True)
class AdjustInventoryCommand:
    item: int
    delta_qty: int
    reason: str
    reference: str = ""


@dataclass(frozen=True, kw_only=True)
class ConsumeMaterialCommand:
    material: int
    quantity: int
    reason: str = ""
    reference: str = ""


@dataclass(frozen=True, kw_only=True)
class IssueMaterialsCommand:
    order: int
    issues: Tuple[Tuple[int, int], ...]


@dataclass(frozen=True, kw_only=True)
class CompleteBatchCommand:
    batch: int
    actual_quantity: int
    location: Optional[int] = None
    qc_required: Optional[bool] = None
    loss_qty: Optional[int] = None
    loss_reason: str = ""
    notes: str = ""


Command = Union[
    ReceiveMaterialCommand,
    MoveInventoryCommand,
    AdjustInventoryCommand,
    ConsumeMaterialCommand,
    IssueMaterialsCommand,
    CompleteBatchCommand,
]

COMMANDS: Dict[str, Type] = {
    "receive_material": ReceiveMaterialCommand,
    "move_inventory": MoveInventoryCommand,
    "adjust_inventory": AdjustInventoryCommand,
    "consume_material": ConsumeMaterialCommand,
    "issue_materials": IssueMaterialsCommand,
    "complete_batch": CompleteBatchCommand,
}


@dataclass(frozen=True)
class CommandResult:
    success: bool
    message: str
    code: str = "ok"
    data: Dict[str, Any] = field(default_factory=dict)


# ============================================================
# Parsing
# ============================================================

def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"'{name}' must be an integer.")
    return value


def _as_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"'{name}' must be a string.")
    return value.strip()


def _as_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidInput(f"'{name}' must be true or false.")
    return value


def _as_date(name: str, value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidInput(f"'{name}' must be a date (YYYY-MM-DD).")
    return parsed


def _as_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, str, Decimal)):
        raise InvalidInput(f"'{name}' must be a decimal number.")
    try:
        return Decimal(value)
    except DecimalError:
        raise InvalidInput(f"'{name}' must be a decimal number.")


def _as_issues(name: str, value: Any) -> Tuple[Tuple[int, int], ...]:
    if not isinstance(value, (list, tuple)) or not value:
        raise InvalidInput(f"'{name}' must be a non-empty list.")
    lines = []
    for line in value:
        if not isinstance(line, dict):
            raise InvalidInput(f"Each entry of '{name}' must be an object with material and quantity.")
        lines.append((_as_int("material", line.get("material")), _as_int("quantity", line.get("quantity"))))
    return tuple(lines)


# Keyed by the annotation text as written on the command records.
CONVERTERS = {
    "int": _as_int,
    "Optional[int]": _as_int,
    "str": _as_str,
    "Optional[bool]": _as_bool,
    "Optional[date]": _as_date,
    "Optional[Decimal]": _as_decimal,
    "Tuple[Tuple[int, int], ...]": _as_issues,
}


def parse_command(payload: Any) -> Command:
    """Validate a ``{"command": ..., **arguments}`` payload into a command record."""
    if not isinstance(payload, dict):
        raise InvalidInput("Command payload must be an object.")

    tag = payload.get("command")
    command_cls = COMMANDS.get(tag) if isinstance(tag, str) else None
    if command_cls is None:
        raise InvalidInput(f"Unknown command: {tag!r}.")

    known = {f.name: f for f in fields(command_cls)}
    unexpected = set(payload) - set(known) - {"command"}
    if unexpected:
        raise InvalidInput(f"Unexpected arguments for {tag}: {', '.join(sorted(unexpected))}.")

    kwargs = {}
    for name, f in known.items():
        if payload.get(name) is None:
            if f.default is MISSING and f.default_factory is MISSING:
                raise InvalidInput(f"Missing argument for {tag}: {name}.")
            continue
        kwargs[name] = CONVERTERS[str(f.type)](name, payload[name])

    return command_cls(**kwargs)


# ============================================================
# Execution
# ============================================================

def _receive_material(command: ReceiveMaterialCommand, actor) -> CommandResult:
    result = inventory_services.receive_material(
        material=command.material,
        quantity=command.quantity,
        location=command.location,
        lot_number=command.lot_number,
        expiry_date=command.expiry_date,
        unit_cost=command.unit_cost,
        reason=command.reason,
        reference=command.reference,
        actor=actor,
    )
    return CommandResult(
        success=True,
        message=f"Received {command.quantity} {result.item.sku} into {result.item.location.name}.",
        data={"item_id": result.item.pk, "adjustment_id": result.adjustment.pk, "on_hand": result.new_quantity},
    )


def _move_inventory(command: MoveInventoryCommand, actor) -> CommandResult:
    result = inventory_services.move_inventory(
        item=command.item,
        quantity=command.quantity,
        to_location=command.to_location,
        reason=command.reason,
        reference=command.reference,
        actor=actor,
    )
    return CommandResult(
        success=True,
        message=(
            f"Moved {result.quantity} {result.source.sku} from {result.source.location.name} "
            f"to {result.destination.location.name}."
        ),
        data={"source_item_id": result.source.pk, "destination_item_id": result.destination.pk},
    )


def _adjust_inventory(command: AdjustInventoryCommand, actor) -> CommandResult:
    result = inventory_services.adjust_inventory(
        item=command.item,
        delta_qty=command.delta_qty,
        reason=command.reason,
        reference=command.reference,
        actor=actor,
    )
    return CommandResult(
        success=True,
        message=f"Adjusted {result.item.sku} by {command.delta_qty}; {result.new_quantity} on hand.",
        data={"item_id": result.item.pk, "adjustment_id": result.adjustment.pk, "on_hand": result.new_quantity},
    )


def _consume_material(command: ConsumeMaterialCommand, actor) -> CommandResult:
    result = inventory_services.consume_material(
        material=command.material,
        quantity=command.quantity,
        reason=command.reason,
        reference=command.reference,
        actor=actor,
    )
    data = {
        "consumed": result.consumed_total,
        "shortage": result.shortage,
        "lots": [{"item_id": lot.item_id, "lot_number": lot.lot_number, "quantity": lot.quantity} for lot in result.lots],
    }
    if not result.is_complete:
        return CommandResult(
            success=False,
            code="insufficient_inventory",
            message=f"Consumed {result.consumed_total} of {result.requested}; short by {result.shortage}.",
            data=data,
        )
    return CommandResult(success=True, message=f"Consumed {result.consumed_total}.", data=data)


def _issue_materials(command: IssueMaterialsCommand, actor) -> CommandResult:
    issued = production_services.issue_materials(
        order=command.order,
        issues=[production_services.MaterialIssue(material=m, quantity=q) for m, q in command.issues],
        actor=actor,
    )
    short = [line for line in issued if line.shortage > 0]
    data = {
        "lines": [
            {"material_id": line.material_id, "sku": line.sku, "issued": line.issued, "shortage": line.shortage}
            for line in issued
        ]
    }
    if short:
        return CommandResult(
            success=False,
            code="insufficient_inventory",
            message="Short on " + ", ".join(f"{line.sku} ({line.shortage})" for line in short) + ".",
            data=data,
        )
    return CommandResult(success=True, message=f"Issued {len(issued)} material(s).", data=data)


def _complete_batch(command: CompleteBatchCommand, actor) -> CommandResult:
    completion = production_services.complete_batch(
        batch=command.batch,
        actual_quantity=command.actual_quantity,
        location=command.location,
        qc_required=command.qc_required,
        loss_qty=command.loss_qty,
        loss_reason=command.loss_reason,
        notes=command.notes,
        actor=actor,
    )
    batch = completion.batch
    return CommandResult(
        success=True,
        message=f"Batch {batch.batch_code} completed with {command.actual_quantity} units ({batch.status}).",
        data={
            "batch_id": batch.pk,
            "status": batch.status,
            "item_id": completion.item.pk if completion.item else None,
        },
    )


HANDLERS = {
    ReceiveMaterialCommand: _receive_material,
    MoveInventoryCommand: _move_inventory,
    AdjustInventoryCommand: _adjust_inventory,
    ConsumeMaterialCommand: _consume_material,
    IssueMaterialsCommand: _issue_materials,
    CompleteBatchCommand: _complete_batch,
}


def execute_command(command: Command, actor=None) -> CommandResult:
    """
    Run a parsed command. Domain errors come back as a failed result
    carrying the error code; anything else propagates.
    """
    handler = HANDLERS.get(type(command))
    if handler is None:
        raise InvalidInput(f"Unsupported command type: {type(command).__name__}.")

    try:
        return handler(command, actor)
    except OperationError as exc:
        logger.info("Assistant command %s rejected: %s", type(command).__name__, exc)
        return CommandResult(success=False, message=str(exc), code=exc.code)
