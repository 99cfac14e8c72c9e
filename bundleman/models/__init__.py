"""Bundleman models."""

from bundleman.models.bundle_component import BundleComponent
from bundleman.models.bundle_record import BundleRecord

__all__ = [
    "BundleComponent",
    "BundleRecord",
]
