"""BundleComponent model."""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class BundleComponent(models.Model):
    """
    One entry of a bundle's component list.

    component_id is a plain catalog id, not a foreign key: components are
    catalog products and only bundles get a BundleRecord.
    """

    record = models.ForeignKey(
        "bundleman.BundleRecord",
        on_delete=models.CASCADE,
        related_name="components",
        verbose_name=_("bundle"),
    )
    component_id = models.BigIntegerField(_("component id"), db_index=True)
    qty = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        default=Decimal("1"),
        verbose_name=_("quantity"),
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    position = models.PositiveSmallIntegerField(_("position"), default=0)

    class Meta:
        verbose_name = _("bundle component")
        verbose_name_plural = _("bundle components")
        ordering = ["record", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["record", "position"],
                name="unique_bundle_component_position",
            ),
        ]

    def __str__(self):
        return f"{self.qty}x {self.component_id} in {self.record.product_id}"

    def clean(self):
        """Validation: a bundle cannot contain itself."""
        if self.record_id and self.component_id == self.record.product_id:
            raise ValidationError("Bundle cannot be component of itself")
