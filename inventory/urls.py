# inventory/urls.py

from django.urls import path

from . import api

app_name = "inventory"

urlpatterns = [
    # JSON query surface
    path("api/items/", api.item_list, name="api_item_list"),
    path("api/items/<int:pk>/", api.item_detail, name="api_item_detail"),
    path("api/items/<int:pk>/adjustments/", api.item_adjustments, name="api_item_adjustments"),
    path("api/adjustments/recent/", api.recent_adjustments, name="api_recent_adjustments"),
    path("api/materials/low-stock/", api.low_stock_materials, name="api_low_stock_materials"),
    path("api/movements/", api.movement_history, name="api_movement_history"),

    # CSV exports
    path("export/adjustments.csv", api.export_adjustments, name="export_adjustments"),
    path("export/inventory.csv", api.export_items, name="export_items"),
    path("export/materials.csv", api.export_materials, name="export_materials"),
]
