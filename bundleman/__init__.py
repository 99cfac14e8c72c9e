"""
Django Bundleman - Bundle products on top of an external catalog.

Usage:
    from bundleman import BundleService, BundleError

    BundleService.on_product_changed(7001)      # webhook: queue and return
    result = BundleService.reconcile(9001)      # reconcile one bundle now
    BundleService.rebuild_index()               # full index rebuild
"""


def __getattr__(name):
    if name == "BundleService":
        from bundleman.service import BundleService

        return BundleService
    elif name == "BundleError":
        from bundleman.exceptions import BundleError

        return BundleError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["BundleService", "BundleError"]
__version__ = "0.1.0"
