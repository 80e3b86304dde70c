# production/api.py

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from core.exceptions import InvalidInput
from core.http import api_view, bool_param

from .models import Batch, ProductionOrder
from .services import get_batch, get_labor_entries, get_order


def _iso(value):
    return value.isoformat() if value else None


def _serialize_batch(batch: Batch) -> dict:
    return {
        "id": batch.id,
        "batch_code": batch.batch_code,
        "product_id": batch.product_id,
        "production_order_id": batch.production_order_id,
        "planned_quantity": batch.planned_quantity,
        "actual_quantity": batch.actual_quantity,
        "expected_yield": batch.expected_yield,
        "actual_yield": batch.actual_yield,
        "loss_qty": batch.loss_qty,
        "loss_reason": batch.loss_reason,
        "status": batch.status,
        "qc_status": batch.qc_status,
        "qc_notes": batch.qc_notes,
        "production_date": _iso(batch.production_date),
        "expiration_date": _iso(batch.expiration_date),
        "started_at": _iso(batch.started_at),
        "completed_at": _iso(batch.completed_at),
    }


def _serialize_order(order: ProductionOrder) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "product": {"id": order.product_id, "sku": order.product.sku, "name": order.product.name},
        "quantity_to_make": order.quantity_to_make,
        "batch_size": order.batch_size,
        "status": order.status,
        "scheduled_date": _iso(order.scheduled_date),
        "due_date": _iso(order.due_date),
        "started_at": _iso(order.started_at),
        "completed_at": _iso(order.completed_at),
        "blocked_reason": order.blocked_reason or None,
        "is_archived": order.is_archived,
        "is_dismissed": order.is_dismissed,
    }


@require_GET
@login_required
@api_view
def order_list(request):
    """
    Production board: active orders by default.

    ?status=IN_PROGRESS filters by status, ?archived=1 lists archived orders instead.
    """
    status = request.GET.get("status") or None
    if status and status not in ProductionOrder.Status.values:
        raise InvalidInput(f"Unknown order status: {status}.")

    qs = ProductionOrder.objects.with_related()
    qs = qs.archived() if bool_param(request, "archived") else qs.board()
    qs = qs.with_status(status).order_by("-created_at", "-pk")
    return JsonResponse({"results": [_serialize_order(o) for o in qs]})


@require_GET
@login_required
@api_view
def order_detail(request, pk: int):
    order = get_order(pk)
    data = _serialize_order(order)
    data["materials"] = [
        {
            "material_id": row.material_id,
            "sku": row.material.sku,
            "required_qty": row.required_qty,
            "available_qty": row.available_qty,
            "shortage_qty": row.shortage_qty,
            "issued_qty": row.issued_qty,
            "remaining_to_issue": row.remaining_to_issue,
        }
        for row in order.materials.select_related("material")
    ]
    data["steps"] = [
        {
            "sequence": step.sequence,
            "step_type": step.step_type,
            "title": step.title,
            "status": step.status,
            "material_id": step.material_id,
            "quantity": step.quantity,
        }
        for step in order.steps.all()
    ]
    data["batches"] = [_serialize_batch(b) for b in order.batches.order_by("created_at", "pk")]
    return JsonResponse(data)


@require_GET
@login_required
@api_view
def batch_detail(request, pk: int):
    batch = get_batch(pk)
    data = _serialize_batch(batch)
    data["inventory"] = [
        {
            "id": item.id,
            "location": item.location.name,
            "quantity_on_hand": item.quantity_on_hand,
            "quantity_reserved": item.quantity_reserved,
            "status": item.status,
        }
        for item in batch.inventory_items.select_related("location").order_by("pk")
    ]
    data["makers"] = [
        {"id": maker.user_id, "username": maker.user.get_username()}
        for maker in batch.makers.select_related("user")
    ]
    labor = get_labor_entries(batch)
    data["labor"] = {
        "total_minutes": labor.total_minutes,
        "total_hours": str(labor.total_hours),
        "entries": [
            {
                "id": entry.id,
                "worker": entry.worker.get_username(),
                "minutes": entry.minutes,
                "role": entry.role,
                "notes": entry.notes,
                "created_at": _iso(entry.created_at),
            }
            for entry in labor.entries
        ],
    }
    return JsonResponse(data)
