"""BundleRecord model."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords


class BundleRecord(models.Model):
    """
    Stored definition of a catalog bundle.

    Mirrors the component list declared on the catalog product so that
    reverse lookups ("which bundles contain X") never scan the catalog.
    The catalog stays the source of truth; rows are rewritten whenever the
    product's definition changes.
    """

    product_id = models.BigIntegerField(
        _("product id"),
        unique=True,
        help_text=_("Catalog id of the bundle product"),
    )
    title = models.CharField(_("title"), max_length=255, blank=True)

    # Audit
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    # History tracking
    history = HistoricalRecords()

    class Meta:
        verbose_name = _("bundle record")
        verbose_name_plural = _("bundle records")
        ordering = ["product_id"]

    def __str__(self):
        return f"{self.product_id} - {self.title}" if self.title else str(self.product_id)

    @property
    def component_ids(self) -> list[int]:
        return [c.component_id for c in self.components.order_by("position")]

    @property
    def quantities(self) -> list[Decimal]:
        return [c.qty for c in self.components.order_by("position")]
