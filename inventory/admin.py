from django.contrib import admin
from import_export.admin import ImportExportModelAdmin
from solo.admin import SingletonModelAdmin

from .models import (
    BOMItem,
    InventoryAdjustment,
    InventoryItem,
    InventoryMovement,
    InventorySettings,
    Location,
    Product,
    RawMaterial,
)
from .resources import RawMaterialResource


@admin.register(InventorySettings)
class InventorySettingsAdmin(SingletonModelAdmin):
    pass


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "location_type", "is_default_receiving", "is_default_shipping", "is_active")
    list_filter = ("location_type", "is_active")
    search_fields = ("name",)


@admin.register(RawMaterial)
class RawMaterialAdmin(ImportExportModelAdmin):
    resource_classes = [RawMaterialResource]
    list_display = ("sku", "name", "category", "current_stock_qty", "reorder_point", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("sku", "name")
    # Maintained by the ledger services.
    readonly_fields = ("current_stock_qty",)


class BOMItemInline(admin.TabularInline):
    model = BOMItem
    fk_name = "product"
    extra = 0
    autocomplete_fields = ["material"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "default_batch_size", "shelf_life_days", "is_active")
    list_filter = ("is_active",)
    search_fields = ("sku", "name")
    inlines = [BOMItemInline]


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ("__str__", "kind", "status", "quantity_on_hand", "quantity_reserved", "expiry_date")
    list_filter = ("kind", "status", "location")
    search_fields = ("lot_number", "material__sku", "product__sku")
    readonly_fields = ("quantity_on_hand", "quantity_reserved")


class LedgerAdmin(admin.ModelAdmin):
    """Ledger rows are written by services only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InventoryAdjustment)
class InventoryAdjustmentAdmin(LedgerAdmin):
    list_display = ("created_at", "inventory_item", "adjustment_type", "delta_qty", "created_by")
    list_filter = ("adjustment_type",)
    search_fields = ("reason", "related_entity_id")


@admin.register(InventoryMovement)
class InventoryMovementAdmin(LedgerAdmin):
    list_display = ("created_at", "inventory_item", "movement_type", "quantity", "from_location", "to_location")
    list_filter = ("movement_type",)
    search_fields = ("reference", "reason")
