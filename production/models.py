# production/models.py

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from core.domain.hooks import on_transition
from core.models import BaseModel, StatefulDomainModel, TimeStampedModel
from core.services.numbering import generate_number_for_instance

from production.domain import BatchHeldForQC, BatchReleased, ProductionOrderStatusChanged
from production.managers import BatchManager, ProductionOrderManager


# ============================================================
# Production orders
# ============================================================
class ProductionOrder(StatefulDomainModel, BaseModel):
    """
    A request to make ``quantity_to_make`` units of a product, split into
    batches of ``batch_size``.

    ``status`` is the only state-machine field. ``archived_at`` and
    ``dismissed_at`` are view filters and never take part in transitions.
    """

    class Status(models.TextChoices):
        PLANNED = "PLANNED", _("Planned")
        IN_PROGRESS = "IN_PROGRESS", _("In progress")
        BLOCKED = "BLOCKED", _("Blocked")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")

    TRANSITIONS = {
        Status.PLANNED: {Status.IN_PROGRESS, Status.BLOCKED, Status.CANCELLED},
        Status.IN_PROGRESS: {Status.BLOCKED, Status.COMPLETED, Status.CANCELLED},
        Status.BLOCKED: {Status.PLANNED, Status.BLOCKED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }

    order_number = models.CharField(
        max_length=40,
        unique=True,
        blank=True,
        verbose_name=_("Order number"),
    )
    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.PROTECT,
        related_name="production_orders",
        verbose_name=_("Product"),
    )
    quantity_to_make = models.PositiveIntegerField(verbose_name=_("Quantity to make"))
    batch_size = models.PositiveIntegerField(verbose_name=_("Batch size"))
    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.PLANNED,
        db_index=True,
        verbose_name=_("Status"),
    )
    scheduled_date = models.DateField(null=True, blank=True, verbose_name=_("Scheduled date"))
    due_date = models.DateField(null=True, blank=True, verbose_name=_("Due date"))
    started_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Started at"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed at"))

    blocked_reason = models.TextField(blank=True, verbose_name=_("Blocked reason"))
    blocked_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Blocked at"))
    archived_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Archived at"))
    archive_reason = models.TextField(blank=True, verbose_name=_("Archive reason"))
    dismissed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Dismissed at"))

    # Read cache of the ProductionOrderMaterial rows; overwritten on every recalculation.
    material_requirements = models.JSONField(default=list, blank=True, verbose_name=_("Material requirements"))
    requirements_calculated_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Requirements calculated at"),
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    objects = ProductionOrderManager()

    class Meta:
        verbose_name = _("Production order")
        verbose_name_plural = _("Production orders")
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["status", "archived_at", "dismissed_at"], name="prodorder_board_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity_to_make__gt=0), name="prodorder_quantity_positive"),
            models.CheckConstraint(condition=Q(batch_size__gt=0), name="prodorder_batch_size_positive"),
        ]

    def __str__(self) -> str:
        return self.order_number or f"Production order #{self.pk}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_number_for_instance(self, field_name="order_number")
        super().save(*args, **kwargs)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def is_dismissed(self) -> bool:
        return self.dismissed_at is not None

    @on_transition()
    def _on_status_changed(self, old, new):
        self.emit(
            ProductionOrderStatusChanged(
                order_id=self.pk,
                order_number=self.order_number,
                old_status=str(old),
                new_status=str(new),
            )
        )


class ProductionOrderMaterial(TimeStampedModel):
    """Normalized requirement row: one material needed by one order."""

    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.CASCADE,
        related_name="materials",
        verbose_name=_("Production order"),
    )
    material = models.ForeignKey(
        "inventory.RawMaterial",
        on_delete=models.PROTECT,
        related_name="production_requirements",
        verbose_name=_("Material"),
    )
    required_qty = models.PositiveIntegerField(default=0, verbose_name=_("Required"))
    available_qty = models.IntegerField(default=0, verbose_name=_("Available at calculation"))
    shortage_qty = models.PositiveIntegerField(default=0, verbose_name=_("Shortage"))
    issued_qty = models.PositiveIntegerField(default=0, verbose_name=_("Issued"))

    class Meta:
        verbose_name = _("Production order material")
        verbose_name_plural = _("Production order materials")
        ordering = ("order", "material__name")
        constraints = [
            models.UniqueConstraint(fields=["order", "material"], name="uniq_prodorder_material"),
        ]

    def __str__(self) -> str:
        return f"{self.order} / {self.material.sku}: {self.issued_qty}/{self.required_qty}"

    @property
    def remaining_to_issue(self) -> int:
        return max(0, self.required_qty - self.issued_qty)


class ProductionOrderStep(TimeStampedModel):
    class StepType(models.TextChoices):
        MATERIAL_ISSUE = "MATERIAL_ISSUE", _("Material issue")
        INSTRUCTION = "INSTRUCTION", _("Instruction")

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        DONE = "DONE", _("Done")
        SKIPPED = "SKIPPED", _("Skipped")

    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.CASCADE,
        related_name="steps",
        verbose_name=_("Production order"),
    )
    sequence = models.PositiveIntegerField(verbose_name=_("Sequence"))
    step_type = models.CharField(max_length=16, choices=StepType.choices, verbose_name=_("Type"))
    title = models.CharField(max_length=200, verbose_name=_("Title"))
    instructions = models.TextField(blank=True, verbose_name=_("Instructions"))
    material = models.ForeignKey(
        "inventory.RawMaterial",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="production_steps",
        verbose_name=_("Material"),
    )
    quantity = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Quantity"))
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        verbose_name=_("Status"),
    )
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed at"))

    class Meta:
        verbose_name = _("Production step")
        verbose_name_plural = _("Production steps")
        ordering = ("order", "sequence")
        constraints = [
            models.UniqueConstraint(fields=["order", "sequence"], name="uniq_prodstep_order_sequence"),
        ]

    def __str__(self) -> str:
        return f"{self.order} #{self.sequence} {self.title}"


# ============================================================
# Batches
# ============================================================
class Batch(StatefulDomainModel, BaseModel):
    """One production run of a product."""

    class Status(models.TextChoices):
        PLANNED = "PLANNED", _("Planned")
        IN_PROGRESS = "IN_PROGRESS", _("In progress")
        QC_HOLD = "QC_HOLD", _("QC hold")
        RELEASED = "RELEASED", _("Released")
        EXHAUSTED = "EXHAUSTED", _("Exhausted")
        CANCELLED = "CANCELLED", _("Cancelled")

    class QCStatus(models.TextChoices):
        NOT_REQUIRED = "NOT_REQUIRED", _("Not required")
        PENDING = "PENDING", _("Pending")
        HOLD = "HOLD", _("Hold")
        PASSED = "PASSED", _("Passed")
        FAILED = "FAILED", _("Failed")

    TRANSITIONS = {
        Status.PLANNED: {Status.IN_PROGRESS, Status.QC_HOLD, Status.RELEASED, Status.CANCELLED},
        Status.IN_PROGRESS: {Status.QC_HOLD, Status.RELEASED, Status.CANCELLED},
        Status.QC_HOLD: {Status.RELEASED, Status.CANCELLED},
        Status.RELEASED: {Status.EXHAUSTED, Status.CANCELLED},
        Status.EXHAUSTED: set(),
        Status.CANCELLED: set(),
    }

    batch_code = models.CharField(max_length=60, unique=True, blank=True, verbose_name=_("Batch code"))
    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.PROTECT,
        related_name="batches",
        verbose_name=_("Product"),
    )
    production_order = models.ForeignKey(
        ProductionOrder,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="batches",
        verbose_name=_("Production order"),
    )
    planned_quantity = models.PositiveIntegerField(verbose_name=_("Planned quantity"))
    actual_quantity = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Actual quantity"))
    expected_yield = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Expected yield"))
    actual_yield = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Actual yield"))
    loss_qty = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Loss"))
    loss_reason = models.TextField(blank=True, verbose_name=_("Loss reason"))
    status = models.CharField(
        max_length=12,
        choices=Status.choices,
        default=Status.PLANNED,
        db_index=True,
        verbose_name=_("Status"),
    )
    qc_status = models.CharField(
        max_length=12,
        choices=QCStatus.choices,
        default=QCStatus.NOT_REQUIRED,
        verbose_name=_("QC status"),
    )
    qc_notes = models.TextField(blank=True, verbose_name=_("QC notes"))
    qc_decided_at = models.DateTimeField(null=True, blank=True, verbose_name=_("QC decided at"))
    production_date = models.DateField(null=True, blank=True, verbose_name=_("Production date"))
    expiration_date = models.DateField(null=True, blank=True, verbose_name=_("Expiration date"))
    started_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Started at"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed at"))
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    objects = BatchManager()

    class Meta:
        verbose_name = _("Batch")
        verbose_name_plural = _("Batches")
        ordering = ("-created_at",)
        constraints = [
            models.CheckConstraint(condition=Q(planned_quantity__gt=0), name="batch_planned_quantity_positive"),
        ]

    def __str__(self) -> str:
        return self.batch_code or f"Batch #{self.pk}"

    def save(self, *args, **kwargs):
        if not self.batch_code:
            self.batch_code = generate_number_for_instance(self, field_name="batch_code")
        super().save(*args, **kwargs)

    def get_numbering_context(self) -> dict:
        return {"prefix": self.product.sku}

    def get_numbering_scope(self) -> str:
        return self.product.sku

    @property
    def is_completed(self) -> bool:
        return self.status in (self.Status.QC_HOLD, self.Status.RELEASED, self.Status.EXHAUSTED)

    @on_transition(to_state=Status.QC_HOLD)
    def _on_qc_hold(self, old, new):
        self.emit(BatchHeldForQC(batch_id=self.pk, batch_code=self.batch_code))

    @on_transition(to_state=Status.RELEASED)
    def _on_released(self, old, new):
        self.emit(
            BatchReleased(
                batch_id=self.pk,
                batch_code=self.batch_code,
                product_id=self.product_id,
                quantity=self.actual_quantity or 0,
            )
        )


# ============================================================
# Batch labor and makers
# ============================================================
class LaborEntry(TimeStampedModel):
    """Minutes a worker spent on a batch."""

    batch = models.ForeignKey(
        Batch,
        on_delete=models.CASCADE,
        related_name="labor_entries",
        verbose_name=_("Batch"),
    )
    worker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="labor_entries",
        verbose_name=_("Worker"),
    )
    minutes = models.PositiveIntegerField(verbose_name=_("Minutes"))
    role = models.CharField(max_length=80, blank=True, verbose_name=_("Role"))
    notes = models.TextField(blank=True, verbose_name=_("Notes"))
    logged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
        verbose_name=_("Logged by"),
    )

    class Meta:
        verbose_name = _("Labor entry")
        verbose_name_plural = _("Labor entries")
        ordering = ("-created_at", "-pk")
        constraints = [
            models.CheckConstraint(condition=Q(minutes__gt=0), name="labor_minutes_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.batch} / {self.worker}: {self.minutes} min"


class BatchMaker(TimeStampedModel):
    batch = models.ForeignKey(
        Batch,
        on_delete=models.CASCADE,
        related_name="makers",
        verbose_name=_("Batch"),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="batch_assignments",
        verbose_name=_("Maker"),
    )

    class Meta:
        verbose_name = _("Batch maker")
        verbose_name_plural = _("Batch makers")
        ordering = ("batch", "pk")
        constraints = [
            models.UniqueConstraint(fields=["batch", "user"], name="uniq_batch_maker"),
        ]

    def __str__(self) -> str:
        return f"{self.batch} / {self.user}"
