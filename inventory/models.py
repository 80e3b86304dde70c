# inventory/models.py

from __future__ import annotations

from decimal import Decimal, ROUND_UP

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from solo.models import SingletonModel

from core.exceptions import InvalidOperation
from core.models import BaseModel, TimeStampedModel

from inventory.managers import (
    BOMItemManager,
    InventoryAdjustmentManager,
    InventoryItemManager,
    InventoryMovementManager,
    LocationManager,
    ProductManager,
    RawMaterialManager,
)


# ============================================================
# Inventory Settings
# ============================================================
class InventorySettings(SingletonModel):
    recent_adjustments_hours = models.PositiveIntegerField(
        default=48,
        verbose_name=_("Recent adjustments window (hours)"),
    )
    list_page_size = models.PositiveIntegerField(
        default=50,
        verbose_name=_("Inventory list page size"),
    )
    detail_movement_limit = models.PositiveIntegerField(
        default=100,
        verbose_name=_("Movements shown on item detail"),
    )
    expiring_soon_days = models.PositiveIntegerField(
        default=30,
        verbose_name=_("Expiring soon threshold (days)"),
    )
    default_qc_required = models.BooleanField(
        default=False,
        verbose_name=_("Require QC for completed batches by default"),
    )

    class Meta:
        verbose_name = _("Inventory settings")

    def __str__(self) -> str:
        return "Inventory settings"


class UnitOfMeasure(models.TextChoices):
    GRAM = "GRAM", _("Gram")
    KILOGRAM = "KILOGRAM", _("Kilogram")
    MILLILITER = "MILLILITER", _("Milliliter")
    LITER = "LITER", _("Liter")
    UNIT = "UNIT", _("Unit")
    EACH = "EACH", _("Each")
    PACK = "PACK", _("Pack")
    BOX = "BOX", _("Box")


# ============================================================
# Locations
# ============================================================
class Location(BaseModel):
    class LocationType(models.TextChoices):
        WAREHOUSE = "WAREHOUSE", _("Warehouse")
        PRODUCTION = "PRODUCTION", _("Production")
        RECEIVING = "RECEIVING", _("Receiving")
        SHIPPING = "SHIPPING", _("Shipping")
        QUARANTINE = "QUARANTINE", _("Quarantine")
        RETAIL = "RETAIL", _("Retail")

    name = models.CharField(max_length=120, unique=True, verbose_name=_("Name"))
    location_type = models.CharField(
        max_length=20,
        choices=LocationType.choices,
        default=LocationType.WAREHOUSE,
        verbose_name=_("Type"),
    )
    description = models.TextField(blank=True, verbose_name=_("Description"))
    is_default_receiving = models.BooleanField(default=False, verbose_name=_("Default receiving location"))
    is_default_shipping = models.BooleanField(default=False, verbose_name=_("Default shipping location"))
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    objects = LocationManager()

    class Meta:
        verbose_name = _("Location")
        verbose_name_plural = _("Locations")
        ordering = ("name",)
        constraints = [
            models.UniqueConstraint(
                fields=["is_default_receiving"],
                condition=Q(is_default_receiving=True),
                name="uniq_location_default_receiving",
            ),
        ]

    def __str__(self) -> str:
        return self.name


# ============================================================
# Catalog
# ============================================================
class RawMaterial(BaseModel):
    sku = models.CharField(max_length=64, unique=True, verbose_name=_("SKU"))
    name = models.CharField(max_length=200, verbose_name=_("Name"))
    category = models.CharField(max_length=100, blank=True, verbose_name=_("Category"))
    unit_of_measure = models.CharField(
        max_length=20,
        choices=UnitOfMeasure.choices,
        default=UnitOfMeasure.UNIT,
        verbose_name=_("Unit of measure"),
    )
    # Cache of on-hand across all MATERIAL items; kept in step by apply_adjustment.
    current_stock_qty = models.IntegerField(default=0, verbose_name=_("Current stock"))
    reorder_point = models.PositiveIntegerField(default=0, verbose_name=_("Reorder point"))
    reorder_quantity = models.PositiveIntegerField(default=0, verbose_name=_("Reorder quantity"))
    lead_time_days = models.PositiveIntegerField(default=0, verbose_name=_("Lead time (days)"))
    cost_per_unit = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_("Cost per unit"),
    )
    default_location = models.ForeignKey(
        Location,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_for_materials",
        verbose_name=_("Default location"),
    )
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    objects = RawMaterialManager()

    class Meta:
        verbose_name = _("Raw material")
        verbose_name_plural = _("Raw materials")
        ordering = ("name",)
        indexes = [
            models.Index(fields=["is_active", "current_stock_qty"], name="rawmat_active_stock_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_point > 0 and self.current_stock_qty < self.reorder_point


class Product(BaseModel):
    sku = models.CharField(max_length=64, unique=True, verbose_name=_("SKU"))
    name = models.CharField(max_length=200, verbose_name=_("Name"))
    unit_of_measure = models.CharField(
        max_length=20,
        choices=UnitOfMeasure.choices,
        default=UnitOfMeasure.UNIT,
        verbose_name=_("Unit of measure"),
    )
    default_batch_size = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Default batch size"),
    )
    shelf_life_days = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Shelf life (days)"))
    default_location = models.ForeignKey(
        Location,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_for_products",
        verbose_name=_("Default finished-goods location"),
    )
    manufacturing_steps = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_("Manufacturing steps"),
        help_text=_('List of {"title": ..., "instructions": ...} objects.'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    objects = ProductManager()

    class Meta:
        verbose_name = _("Product")
        verbose_name_plural = _("Products")
        ordering = ("name",)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"

    def active_bom_items(self):
        return BOMItem.objects.for_product(self)


class BOMItem(BaseModel):
    """
    One bill-of-materials line. Several versions may exist for a
    (product, material) pair but only one of them is active.
    """

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="bom_items",
        verbose_name=_("Product"),
    )
    material = models.ForeignKey(
        RawMaterial,
        on_delete=models.PROTECT,
        related_name="bom_usages",
        verbose_name=_("Material"),
    )
    quantity_per_unit = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        verbose_name=_("Quantity per unit"),
    )
    version = models.PositiveIntegerField(default=1, verbose_name=_("Version"))
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    objects = BOMItemManager()

    class Meta:
        verbose_name = _("BOM line")
        verbose_name_plural = _("BOM lines")
        ordering = ("product", "material", "-version")
        constraints = [
            models.UniqueConstraint(
                fields=["product", "material", "version"],
                name="uniq_bom_product_material_version",
            ),
            models.UniqueConstraint(
                fields=["product", "material"],
                condition=Q(is_active=True),
                name="uniq_bom_active_product_material",
            ),
            models.CheckConstraint(
                condition=Q(quantity_per_unit__gt=0),
                name="bom_quantity_per_unit_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product.sku} <- {self.quantity_per_unit} x {self.material.sku} (v{self.version})"

    def required_for(self, quantity: int) -> int:
        """Whole units of material needed to make ``quantity`` products (rounded up)."""
        total = (Decimal(self.quantity_per_unit) * Decimal(int(quantity))).to_integral_value(rounding=ROUND_UP)
        return int(total)


# ============================================================
# Inventory items (stock positions)
# ============================================================
class InventoryItem(TimeStampedModel):
    """
    One stock position: a material or product lot at a location.

    quantity_on_hand is mutated only through inventory.services.apply_adjustment;
    quantity_reserved only through reserve()/release(). Rows are never deleted.
    """

    class Kind(models.TextChoices):
        MATERIAL = "MATERIAL", _("Material")
        PRODUCT = "PRODUCT", _("Product")

    class Status(models.TextChoices):
        AVAILABLE = "AVAILABLE", _("Available")
        QUARANTINED = "QUARANTINED", _("Quarantined")
        DAMAGED = "DAMAGED", _("Damaged")
        SCRAPPED = "SCRAPPED", _("Scrapped")

    class Source(models.TextChoices):
        MANUAL = "MANUAL", _("Manual")
        PURCHASE_ORDER = "PURCHASE_ORDER", _("Purchase order")
        PRODUCTION = "PRODUCTION", _("Production")

    kind = models.CharField(max_length=10, choices=Kind.choices, verbose_name=_("Kind"))
    material = models.ForeignKey(
        RawMaterial,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="inventory_items",
        verbose_name=_("Material"),
    )
    product = models.ForeignKey(
        Product,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="inventory_items",
        verbose_name=_("Product"),
    )
    batch = models.ForeignKey(
        "production.Batch",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="inventory_items",
        verbose_name=_("Batch"),
    )
    location = models.ForeignKey(
        Location,
        on_delete=models.PROTECT,
        related_name="inventory_items",
        verbose_name=_("Location"),
    )
    quantity_on_hand = models.IntegerField(default=0, verbose_name=_("On hand"))
    quantity_reserved = models.IntegerField(default=0, verbose_name=_("Reserved"))
    unit_of_measure = models.CharField(
        max_length=20,
        choices=UnitOfMeasure.choices,
        default=UnitOfMeasure.UNIT,
        verbose_name=_("Unit of measure"),
    )
    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.AVAILABLE,
        db_index=True,
        verbose_name=_("Status"),
    )
    lot_number = models.CharField(max_length=64, blank=True, verbose_name=_("Lot number"))
    expiry_date = models.DateField(null=True, blank=True, verbose_name=_("Expiry date"))
    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_("Unit cost"),
    )
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.MANUAL,
        verbose_name=_("Source"),
    )

    objects = InventoryItemManager()

    class Meta:
        verbose_name = _("Inventory item")
        verbose_name_plural = _("Inventory items")
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["material", "status"], name="invitem_material_status_idx"),
            models.Index(fields=["product", "status"], name="invitem_product_status_idx"),
            models.Index(fields=["expiry_date"], name="invitem_expiry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity_on_hand__gte=0),
                name="invitem_on_hand_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(quantity_reserved__gte=0),
                name="invitem_reserved_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(quantity_reserved__lte=F("quantity_on_hand")),
                name="invitem_reserved_within_on_hand",
            ),
            models.CheckConstraint(
                condition=(
                    Q(kind="MATERIAL", material__isnull=False, product__isnull=True)
                    | Q(kind="PRODUCT", product__isnull=False, material__isnull=True)
                ),
                name="invitem_kind_matches_reference",
            ),
            # One row per stock position; NULL references compare equal.
            models.UniqueConstraint(
                fields=[
                    "kind",
                    "material",
                    "product",
                    "batch",
                    "location",
                    "lot_number",
                    "expiry_date",
                    "status",
                ],
                nulls_distinct=False,
                name="uniq_invitem_stock_position",
            ),
        ]

    def __str__(self) -> str:
        lot = f" [{self.lot_number}]" if self.lot_number else ""
        return f"{self.item_name}{lot} @ {self.location} = {self.quantity_on_hand}"

    def clean(self):
        super().clean()
        if self.kind == self.Kind.MATERIAL and (not self.material_id or self.product_id):
            raise ValidationError({"material": _("Material items must reference a material only.")})
        if self.kind == self.Kind.PRODUCT and (not self.product_id or self.material_id):
            raise ValidationError({"product": _("Product items must reference a product only.")})

    @property
    def available_quantity(self) -> int:
        return (self.quantity_on_hand or 0) - (self.quantity_reserved or 0)

    @property
    def catalog_item(self):
        return self.material if self.kind == self.Kind.MATERIAL else self.product

    @property
    def item_name(self) -> str:
        obj = self.catalog_item
        return obj.name if obj is not None else ""

    @property
    def sku(self) -> str:
        obj = self.catalog_item
        return obj.sku if obj is not None else ""

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < timezone.localdate()


# ============================================================
# Ledger
# ============================================================
class AppendOnlyModel(models.Model):
    """Rows can be inserted once; save() on an existing row and delete() are refused."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidOperation(
                _("%(model)s rows are immutable once written.") % {"model": type(self).__name__}
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidOperation(
            _("%(model)s rows cannot be deleted.") % {"model": type(self).__name__}
        )


class InventoryAdjustment(AppendOnlyModel):
    class AdjustmentType(models.TextChoices):
        RECEIVING = "RECEIVING", _("Receiving")
        PRODUCTION_COMPLETE = "PRODUCTION_COMPLETE", _("Production complete")
        PRODUCTION_SCRAP = "PRODUCTION_SCRAP", _("Production scrap")
        CONSUMPTION = "CONSUMPTION", _("Consumption")
        MANUAL_CORRECTION = "MANUAL_CORRECTION", _("Manual correction")
        TRANSFER = "TRANSFER", _("Transfer")

    class RelatedEntity(models.TextChoices):
        PRODUCTION_ORDER = "PRODUCTION_ORDER", _("Production order")
        BATCH = "BATCH", _("Batch")
        PURCHASE_ORDER = "PURCHASE_ORDER", _("Purchase order")
        SALES_ORDER = "SALES_ORDER", _("Sales order")
        INVENTORY_ITEM = "INVENTORY_ITEM", _("Inventory item")

    inventory_item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name="adjustments",
        verbose_name=_("Inventory item"),
    )
    delta_qty = models.IntegerField(verbose_name=_("Delta"))
    reason = models.TextField(verbose_name=_("Reason"))
    adjustment_type = models.CharField(
        max_length=24,
        choices=AdjustmentType.choices,
        db_index=True,
        verbose_name=_("Adjustment type"),
    )
    related_entity_type = models.CharField(
        max_length=24,
        choices=RelatedEntity.choices,
        blank=True,
        verbose_name=_("Related entity type"),
    )
    related_entity_id = models.CharField(max_length=64, blank=True, verbose_name=_("Related entity ID"))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="inventory_adjustments",
        verbose_name=_("Created by"),
    )
    created_at = models.DateTimeField(default=timezone.now, editable=False, db_index=True, verbose_name=_("Created at"))

    objects = InventoryAdjustmentManager()

    class Meta:
        verbose_name = _("Inventory adjustment")
        verbose_name_plural = _("Inventory adjustments")
        ordering = ("-created_at", "-pk")
        indexes = [
            models.Index(fields=["inventory_item", "created_at"], name="invadj_item_created_idx"),
            models.Index(fields=["related_entity_type", "related_entity_id"], name="invadj_related_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(delta_qty=0), name="invadj_delta_non_zero"),
        ]

    def __str__(self) -> str:
        sign = "+" if self.delta_qty > 0 else ""
        return f"{self.get_adjustment_type_display()} {sign}{self.delta_qty} on item #{self.inventory_item_id}"


class InventoryMovement(AppendOnlyModel):
    """
    Human-readable audit trail row. Never used for quantity math; location
    names are copied so history stays stable when locations are renamed.
    """

    class MovementType(models.TextChoices):
        ADJUST = "ADJUST", _("Adjust")
        MOVE = "MOVE", _("Move")
        CONSUME = "CONSUME", _("Consume")
        PRODUCE = "PRODUCE", _("Produce")
        RECEIVE = "RECEIVE", _("Receive")
        RETURN = "RETURN", _("Return")
        RESERVE = "RESERVE", _("Reserve")
        RELEASE = "RELEASE", _("Release")

    inventory_item = models.ForeignKey(
        InventoryItem,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="movements",
        verbose_name=_("Inventory item"),
    )
    adjustment = models.ForeignKey(
        InventoryAdjustment,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="movements",
        verbose_name=_("Adjustment"),
    )
    movement_type = models.CharField(
        max_length=10,
        choices=MovementType.choices,
        db_index=True,
        verbose_name=_("Type"),
    )
    quantity = models.IntegerField(verbose_name=_("Quantity"))
    from_location = models.CharField(max_length=120, blank=True, verbose_name=_("From location"))
    to_location = models.CharField(max_length=120, blank=True, verbose_name=_("To location"))
    reason = models.TextField(blank=True, verbose_name=_("Reason"))
    reference = models.CharField(max_length=120, blank=True, verbose_name=_("Reference"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="inventory_movements",
        verbose_name=_("User"),
    )
    created_at = models.DateTimeField(default=timezone.now, editable=False, db_index=True, verbose_name=_("Created at"))

    objects = InventoryMovementManager()

    class Meta:
        verbose_name = _("Inventory movement")
        verbose_name_plural = _("Inventory movements")
        ordering = ("-created_at", "-pk")

    def __str__(self) -> str:
        route = " -> ".join(part for part in (self.from_location, self.to_location) if part)
        return f"{self.movement_type} {self.quantity} {route}".strip()


# Movement type written next to each adjustment type.
MOVEMENT_TYPE_FOR_ADJUSTMENT = {
    InventoryAdjustment.AdjustmentType.PRODUCTION_COMPLETE: InventoryMovement.MovementType.PRODUCE,
    InventoryAdjustment.AdjustmentType.RECEIVING: InventoryMovement.MovementType.RECEIVE,
    InventoryAdjustment.AdjustmentType.CONSUMPTION: InventoryMovement.MovementType.CONSUME,
    InventoryAdjustment.AdjustmentType.TRANSFER: InventoryMovement.MovementType.MOVE,
}


def movement_type_for(adjustment_type: str) -> str:
    return MOVEMENT_TYPE_FOR_ADJUSTMENT.get(adjustment_type, InventoryMovement.MovementType.ADJUST)
