# core/models/numbering.py
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class NumberingScheme(models.Model):
    """
    Numbering configuration per model.

    Example row:
    - model_label: "production.ProductionOrder"
    - field_name: "order_number"
    - pattern: "PO-{year}-{seq:04d}"
    - reset: "year"
    - start: 1
    """

    class ResetPolicy(models.TextChoices):
        NEVER = "never", _("Never")
        YEAR = "year", _("Yearly")
        MONTH = "month", _("Monthly")

    # Built-in patterns used when no row exists yet for a label.
    DEFAULT_PATTERNS = {
        "production.ProductionOrder": ("PO-{year}-{seq:04d}", ResetPolicy.YEAR),
        "production.Batch": ("{prefix}-{year}{month:02d}-{seq:03d}", ResetPolicy.MONTH),
    }

    model_label = models.CharField(
        max_length=100,
        verbose_name=_("Model label"),
        help_text=_("e.g. production.ProductionOrder"),
    )

    field_name = models.CharField(
        max_length=50,
        default="number",
        verbose_name=_("Field name"),
    )

    pattern = models.CharField(
        max_length=100,
        verbose_name=_("Pattern"),
        help_text=_("e.g. PO-{year}-{seq:04d} or {prefix}-{year}{month:02d}-{seq:03d}"),
    )

    reset = models.CharField(
        max_length=10,
        choices=ResetPolicy.choices,
        default=ResetPolicy.YEAR,
        verbose_name=_("Reset policy"),
    )

    start = models.PositiveIntegerField(
        default=1,
        verbose_name=_("Start value"),
    )

    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Updated at"),
    )

    class Meta:
        verbose_name = _("Numbering scheme")
        verbose_name_plural = _("Numbering schemes")
        constraints = [
            models.UniqueConstraint(
                fields=["model_label", "field_name"],
                name="uniq_numbering_scheme_label_field",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.model_label} -> {self.pattern}"

    def clean(self):
        super().clean()
        if "{seq" not in self.pattern:
            raise ValidationError(_("The pattern must contain the {seq} placeholder."))

    @classmethod
    def get_for_instance(
        cls,
        instance: models.Model,
        field_name: str = "number",
    ) -> "NumberingScheme":
        """
        Get the active scheme for the instance's model label + field_name,
        creating one from DEFAULT_PATTERNS (or a plain counter) if missing.
        """
        label = instance._meta.label

        try:
            return cls.objects.get(
                model_label=label,
                field_name=field_name,
                is_active=True,
            )
        except cls.DoesNotExist:
            pattern, reset = cls.DEFAULT_PATTERNS.get(
                label, ("{seq:06d}", cls.ResetPolicy.NEVER)
            )
            scheme, _created = cls.objects.get_or_create(
                model_label=label,
                field_name=field_name,
                defaults={
                    "pattern": pattern,
                    "reset": reset,
                    "start": 1,
                    "is_active": True,
                },
            )
            return scheme
