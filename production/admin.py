from django.contrib import admin

from .models import Batch, BatchMaker, LaborEntry, ProductionOrder, ProductionOrderMaterial, ProductionOrderStep


class ProductionOrderMaterialInline(admin.TabularInline):
    model = ProductionOrderMaterial
    extra = 0
    readonly_fields = ("material", "required_qty", "available_qty", "shortage_qty", "issued_qty")
    can_delete = False


class ProductionOrderStepInline(admin.TabularInline):
    model = ProductionOrderStep
    extra = 0


class BatchMakerInline(admin.TabularInline):
    model = BatchMaker
    extra = 0


class LaborEntryInline(admin.TabularInline):
    model = LaborEntry
    fk_name = "batch"
    extra = 0
    fields = ("worker", "minutes", "role", "notes", "logged_by")
    readonly_fields = ("logged_by",)


@admin.register(ProductionOrder)
class ProductionOrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "product", "quantity_to_make", "status", "due_date")
    list_filter = ("status",)
    search_fields = ("order_number", "product__sku")
    # Status changes go through the production services.
    readonly_fields = ("order_number", "status", "started_at", "completed_at", "archived_at", "dismissed_at")
    inlines = [ProductionOrderMaterialInline, ProductionOrderStepInline]


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = ("batch_code", "product", "planned_quantity", "actual_quantity", "status", "qc_status")
    list_filter = ("status", "qc_status")
    search_fields = ("batch_code", "product__sku")
    readonly_fields = ("batch_code", "status", "qc_status", "completed_at")
    inlines = [BatchMakerInline, LaborEntryInline]
