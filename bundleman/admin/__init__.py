"""Bundleman admin."""

from bundleman.admin.bundle_record import BundleComponentInline, BundleRecordAdmin

__all__ = [
    "BundleComponentInline",
    "BundleRecordAdmin",
]
