# inventory/resources.py
from import_export import fields, resources
from import_export.widgets import ForeignKeyWidget

from .models import InventoryAdjustment, InventoryItem, Location, RawMaterial


class RawMaterialResource(resources.ModelResource):
    # Import/export the default location by name instead of ID
    default_location = fields.Field(
        column_name="default_location",
        attribute="default_location",
        widget=ForeignKeyWidget(Location, field="name"),
    )

    class Meta:
        model = RawMaterial
        fields = (
            "sku",
            "name",
            "category",
            "unit_of_measure",
            "reorder_point",
            "reorder_quantity",
            "lead_time_days",
            "cost_per_unit",
            "default_location",
            "is_active",
        )
        import_id_fields = ("sku",)
        skip_unchanged = True
        report_skipped = True


class InventoryItemResource(resources.ModelResource):
    """Read-only stock snapshot export."""

    sku = fields.Field(column_name="sku", readonly=True)
    item = fields.Field(column_name="item", readonly=True)
    location = fields.Field(column_name="location", readonly=True)
    batch = fields.Field(column_name="batch", readonly=True)
    available = fields.Field(column_name="available", readonly=True)

    class Meta:
        model = InventoryItem
        fields = (
            "id",
            "kind",
            "sku",
            "item",
            "location",
            "batch",
            "lot_number",
            "expiry_date",
            "status",
            "quantity_on_hand",
            "quantity_reserved",
            "available",
            "unit_of_measure",
        )

    def dehydrate_sku(self, item):
        return item.sku

    def dehydrate_item(self, item):
        return item.item_name

    def dehydrate_location(self, item):
        return item.location.name

    def dehydrate_batch(self, item):
        return item.batch.batch_code if item.batch_id else ""

    def dehydrate_available(self, item):
        return item.available_quantity


class InventoryAdjustmentResource(resources.ModelResource):
    """Ledger export; adjustments are never imported."""

    item = fields.Field(column_name="item", readonly=True)
    location = fields.Field(column_name="location", readonly=True)
    created_by = fields.Field(column_name="created_by", readonly=True)

    class Meta:
        model = InventoryAdjustment
        fields = (
            "id",
            "created_at",
            "inventory_item",
            "item",
            "location",
            "adjustment_type",
            "delta_qty",
            "reason",
            "related_entity_type",
            "related_entity_id",
            "created_by",
        )

    def dehydrate_item(self, adjustment):
        return adjustment.inventory_item.item_name

    def dehydrate_location(self, adjustment):
        return adjustment.inventory_item.location.name

    def dehydrate_created_by(self, adjustment):
        user = adjustment.created_by
        return user.get_username() if user else ""
