# production/managers.py
from __future__ import annotations

from django.db import models
from django.db.models import Q


class ProductionOrderQuerySet(models.QuerySet):
    def board(self):
        """Orders shown on the production board (not archived, not dismissed)."""
        return self.filter(archived_at__isnull=True, dismissed_at__isnull=True)

    def archived(self):
        return self.filter(archived_at__isnull=False)

    def open(self):
        return self.filter(
            status__in=[
                self.model.Status.PLANNED,
                self.model.Status.IN_PROGRESS,
                self.model.Status.BLOCKED,
            ]
        )

    def with_status(self, status):
        if not status:
            return self
        return self.filter(status=status)

    def with_related(self):
        return self.select_related("product")


class ProductionOrderManager(models.Manager.from_queryset(ProductionOrderQuerySet)):  # type: ignore[misc]
    pass


class BatchQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=self.model.Status.CANCELLED)

    def released(self):
        return self.filter(status__in=[self.model.Status.RELEASED, self.model.Status.EXHAUSTED])

    def unreleased(self):
        return self.active().exclude(
            Q(status=self.model.Status.RELEASED) | Q(status=self.model.Status.EXHAUSTED)
        )

    def awaiting_qc(self):
        return self.filter(status=self.model.Status.QC_HOLD)


class BatchManager(models.Manager.from_queryset(BatchQuerySet)):  # type: ignore[misc]
    pass
