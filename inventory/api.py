# inventory/api.py

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django.views.decorators.http import require_GET

from core.http import api_view, bool_param, int_param

from . import queries
from .models import InventoryAdjustment, InventoryItem, InventoryMovement, RawMaterial
from .resources import InventoryAdjustmentResource, InventoryItemResource, RawMaterialResource
from .services import get_location


# ============================================================
# Serializers
# ============================================================

def _location_payload(location):
    if not location:
        return None
    return {"id": location.id, "name": location.name, "type": location.location_type}


def _serialize_item(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "kind": item.kind,
        "sku": item.sku,
        "name": item.item_name,
        "material_id": item.material_id,
        "product_id": item.product_id,
        "batch_id": item.batch_id,
        "batch_code": item.batch.batch_code if item.batch_id else None,
        "location": _location_payload(item.location),
        "quantity_on_hand": item.quantity_on_hand,
        "quantity_reserved": item.quantity_reserved,
        "available_quantity": item.available_quantity,
        "unit_of_measure": item.unit_of_measure,
        "status": item.status,
        "lot_number": item.lot_number,
        "expiry_date": item.expiry_date.isoformat() if item.expiry_date else None,
        "unit_cost": str(item.unit_cost) if item.unit_cost is not None else None,
        "source": item.source,
        "created_at": item.created_at.isoformat(),
    }


def _serialize_adjustment(adjustment: InventoryAdjustment) -> dict:
    return {
        "id": adjustment.id,
        "inventory_item_id": adjustment.inventory_item_id,
        "delta_qty": adjustment.delta_qty,
        "reason": adjustment.reason,
        "adjustment_type": adjustment.adjustment_type,
        "related_entity_type": adjustment.related_entity_type or None,
        "related_entity_id": adjustment.related_entity_id or None,
        "created_by": adjustment.created_by.get_username() if adjustment.created_by_id else None,
        "created_at": adjustment.created_at.isoformat(),
    }


def _serialize_movement(movement: InventoryMovement) -> dict:
    return {
        "id": movement.id,
        "inventory_item_id": movement.inventory_item_id,
        "movement_type": movement.movement_type,
        "quantity": movement.quantity,
        "from_location": movement.from_location or None,
        "to_location": movement.to_location or None,
        "reason": movement.reason,
        "reference": movement.reference,
        "user": movement.user.get_username() if movement.user_id else None,
        "created_at": movement.created_at.isoformat(),
    }


def _serialize_material(material: RawMaterial) -> dict:
    return {
        "id": material.id,
        "sku": material.sku,
        "name": material.name,
        "unit_of_measure": material.unit_of_measure,
        "current_stock_qty": material.current_stock_qty,
        "reorder_point": material.reorder_point,
        "reorder_quantity": material.reorder_quantity,
        "default_location": _location_payload(material.default_location),
    }


# ============================================================
# Endpoints
# ============================================================

@require_GET
@login_required
@api_view
def item_list(request):
    """
    GET /inventory/api/items/?kind=MATERIAL&status=AVAILABLE&q=flour&page=2

    {"count": 120, "page": 2, "num_pages": 3, "results": [...]}
    """
    page = queries.get_inventory_list(
        kind=request.GET.get("kind") or None,
        location=int_param(request, "location"),
        product=int_param(request, "product"),
        material=int_param(request, "material"),
        batch=int_param(request, "batch"),
        status=request.GET.get("status") or None,
        search=request.GET.get("q") or "",
        has_expiry=bool_param(request, "has_expiry"),
        expiring_within_days=int_param(request, "expiring_within_days"),
        page=int_param(request, "page", 1),
        page_size=int_param(request, "page_size"),
    )
    return JsonResponse(
        {
            "count": page.total,
            "page": page.page,
            "num_pages": page.num_pages,
            "results": [_serialize_item(item) for item in page.items],
        }
    )


@require_GET
@login_required
@api_view
def item_detail(request, pk: int):
    detail = queries.get_inventory_detail(pk)
    data = _serialize_item(detail.item)
    data["movements"] = [_serialize_movement(m) for m in detail.movements]
    return JsonResponse(data)


@require_GET
@login_required
@api_view
def item_adjustments(request, pk: int):
    adjustments = queries.get_inventory_adjustments(pk)
    return JsonResponse({"results": [_serialize_adjustment(a) for a in adjustments]})


@require_GET
@login_required
@api_view
def recent_adjustments(request):
    adjustments = queries.get_recent_adjustments(
        hours=int_param(request, "hours"),
        adjustment_type=request.GET.get("type") or None,
    )
    return JsonResponse({"results": [_serialize_adjustment(a) for a in adjustments]})


@require_GET
@login_required
@api_view
def low_stock_materials(request):
    materials = queries.get_low_stock_materials()
    return JsonResponse({"results": [_serialize_material(m) for m in materials]})


@require_GET
@login_required
@api_view
def movement_history(request):
    location_id = int_param(request, "location")
    location = get_location(location_id) if location_id else None
    movements = queries.get_movement_history(
        item=int_param(request, "item"),
        location=location,
        movement_type=request.GET.get("type") or None,
        limit=int_param(request, "limit"),
    )
    return JsonResponse({"results": [_serialize_movement(m) for m in movements]})


# ============================================================
# CSV exports (django-import-export)
# ============================================================

def _csv_response(dataset, filename: str) -> HttpResponse:
    response = HttpResponse(dataset.csv, content_type="text/csv")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@require_GET
@login_required
def export_adjustments(request):
    qs = InventoryAdjustment.objects.with_related().order_by("created_at", "pk")
    return _csv_response(InventoryAdjustmentResource().export(qs), "adjustments.csv")


@require_GET
@login_required
def export_items(request):
    qs = InventoryItem.objects.with_related().order_by("pk")
    return _csv_response(InventoryItemResource().export(qs), "inventory.csv")


@require_GET
@login_required
def export_materials(request):
    qs = RawMaterial.objects.select_related("default_location").order_by("sku")
    return _csv_response(RawMaterialResource().export(qs), "materials.csv")
