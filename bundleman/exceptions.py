"""Bundleman exceptions."""

from typing import Any


ERROR_MESSAGES = {
    "PRODUCT_NOT_FOUND": "Product not found",
    "RATE_LIMITED": "Catalog rate limit reached",
    "TIMEOUT": "Catalog call timed out",
    "CATALOG_ERROR": "Catalog call failed",
    "RETRIES_EXHAUSTED": "Gave up after repeated rate limiting",
    "NOT_A_BUNDLE": "Product is not a bundle",
    "NO_COMPONENTS": "Bundle has no live components",
    "TOO_MANY_OPTIONS": "Bundle would have more options than allowed",
    "TOO_MANY_VARIANTS": "Bundle would have more variants than allowed",
    "FRACTIONAL_OPTION_COMPONENT": "Component with options needs a whole quantity",
    "EMPTY_MATRIX": "No variant combination could be priced",
    "INVALID_DEFINITION": "Bundle definition could not be decoded",
    "INVALID_QUANTITY": "Invalid quantity",
    "BACKEND_NOT_CONFIGURED": "Backend is not configured",
}

RETRYABLE_CODES = frozenset({"RATE_LIMITED", "TIMEOUT"})


class BundleError(Exception):
    """
    Structured exception for bundle and catalog operations.

    Usage:
        try:
            backend.set_variant_inventory(variant_id, 3)
        except BundleError as e:
            if e.retryable:
                ...  # back off and try again
            elif e.code == "PRODUCT_NOT_FOUND":
                print(f"Product {e.product_id} is gone")
    """

    def __init__(self, code: str, message: str = "", **data: Any) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def product_id(self) -> int | None:
        return self.data.get("product_id")

    @property
    def retryable(self) -> bool:
        """True for failures that go away if the call is repeated later."""
        return self.code in RETRYABLE_CODES

    @property
    def retry_after(self) -> float | None:
        """Seconds the catalog asked us to wait, when it said so."""
        return self.data.get("retry_after")

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }
