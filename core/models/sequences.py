# core/models/sequences.py
from django.db import models


class NumberSequence(models.Model):
    """
    Last used sequence value per (key, period).

    key is the model label plus an optional scope, e.g.
    "production.Batch:SKU-100"; period is "2026" or "2026-10" or "".
    """

    key = models.CharField(max_length=120)
    period = models.CharField(max_length=16, blank=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "period"], name="uniq_number_sequence_key_period"),
        ]

    def __str__(self) -> str:
        if self.period:
            return f"{self.key} [{self.period}] -> {self.last_value}"
        return f"{self.key} -> {self.last_value}"
