"""
CatalogBackend for the Shopify Admin REST API.

Configuration (settings.BUNDLEMAN):
    SHOPIFY_SHOP: shop subdomain ("my-store" for my-store.myshopify.com)
    SHOPIFY_ACCESS_TOKEN: Admin API access token
    SHOPIFY_API_VERSION: API version, e.g. "2024-10"
    SHOPIFY_LOCATION_ID: location whose inventory levels are set
    REQUEST_TIMEOUT: seconds per HTTP call
"""

import json
import logging
import threading
from collections import OrderedDict
from decimal import Decimal

import requests

from bundleman.exceptions import BundleError
from bundleman.protocols import CatalogBackend, CustomField, Option, Product, Variant

logger = logging.getLogger(__name__)

PAGE_LIMIT = 250
INVENTORY_ITEM_CACHE_SIZE = 1024


def parse_variant(data: dict) -> Variant:
    quantity = data.get("inventory_quantity")
    return Variant(
        id=data.get("id"),
        option1=data.get("option1"),
        option2=data.get("option2"),
        option3=data.get("option3"),
        price=Decimal(str(data.get("price") or "0")),
        inventory_managed=data.get("inventory_management") == "shopify",
        available=int(quantity) if quantity is not None else 0,
        inventory_item_id=data.get("inventory_item_id"),
    )


def parse_product(data: dict) -> Product:
    return Product(
        id=data["id"],
        title=data.get("title") or "",
        product_type=data.get("product_type") or "",
        options=[
            Option(
                name=o["name"],
                values=list(o.get("values") or []),
                position=o.get("position", i),
            )
            for i, o in enumerate(data.get("options") or [], start=1)
        ],
        variants=[parse_variant(v) for v in data.get("variants") or []],
    )


def _field_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def serialize_variant(variant: Variant) -> dict:
    data = {
        "option1": variant.option1,
        "option2": variant.option2,
        "option3": variant.option3,
        "price": str(variant.price),
        "inventory_management": "shopify" if variant.inventory_managed else None,
    }
    if variant.id is not None:
        data["id"] = variant.id
    return data


class ShopifyCatalogBackend:
    """
    Catalog backend talking to one Shopify store.

    Error mapping:
        429 -> RATE_LIMITED (retry_after from the Retry-After header)
        404 -> PRODUCT_NOT_FOUND
        timeout -> TIMEOUT
        anything else -> CATALOG_ERROR
    """

    def __init__(
        self,
        shop: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
        location_id: int | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        from bundleman.conf import bundleman_settings

        self.shop = shop or bundleman_settings.SHOPIFY_SHOP
        self.api_version = api_version or bundleman_settings.SHOPIFY_API_VERSION
        self.location_id = location_id or bundleman_settings.SHOPIFY_LOCATION_ID
        self.timeout = timeout or bundleman_settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Shopify-Access-Token": access_token or bundleman_settings.SHOPIFY_ACCESS_TOKEN,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        self._inventory_items: OrderedDict[int, int] = OrderedDict()
        self._items_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return f"https://{self.shop}.myshopify.com/admin/api/{self.api_version}"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, product_id: int | None = None, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise BundleError("TIMEOUT", product_id=product_id, url=url) from e
        except requests.RequestException as e:
            raise BundleError("CATALOG_ERROR", str(e), product_id=product_id, url=url) from e

        if response.status_code == 429:
            raise BundleError(
                "RATE_LIMITED",
                product_id=product_id,
                retry_after=self._retry_after(response),
            )
        if response.status_code == 404:
            raise BundleError("PRODUCT_NOT_FOUND", product_id=product_id, url=url)
        if response.status_code >= 400:
            raise BundleError(
                "CATALOG_ERROR",
                f"{method} {path} returned {response.status_code}",
                product_id=product_id,
                status=response.status_code,
                body=response.text[:500],
            )
        return response

    @staticmethod
    def _retry_after(response: requests.Response) -> float | None:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_product(self, product_id: int) -> Product | None:
        try:
            response = self._request("GET", f"/products/{product_id}.json", product_id=product_id)
        except BundleError as e:
            if e.code == "PRODUCT_NOT_FOUND":
                return None
            raise
        return self._remember_items(parse_product(response.json()["product"]))

    def list_products_by_type(self, product_type: str) -> list[Product]:
        """Every product of a type, following Link rel="next" pages."""
        products = []
        path = "/products.json"
        params = {"product_type": product_type, "limit": PAGE_LIMIT}
        while path:
            response = self._request("GET", path, params=params)
            products.extend(parse_product(p) for p in response.json().get("products", []))
            next_link = response.links.get("next")
            path = next_link["url"] if next_link else None
            # The next URL carries its own page_info cursor
            params = None
        return products

    def get_custom_fields(self, product_id: int) -> list[CustomField]:
        response = self._request("GET", f"/products/{product_id}/metafields.json", product_id=product_id)
        return [
            CustomField(
                key=m["key"],
                value=_field_value(m.get("value")),
                namespace=m.get("namespace") or "",
            )
            for m in response.json().get("metafields", [])
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_variant_price(self, variant_id: int, price: Decimal) -> None:
        self._request(
            "PUT",
            f"/variants/{variant_id}.json",
            json={"variant": {"id": variant_id, "price": str(price)}},
        )

    def update_product_options_and_variants(
        self,
        product_id: int,
        options: list[Option],
        variants: list[Variant],
    ) -> None:
        payload = {
            "product": {
                "id": product_id,
                "options": [{"name": o.name, "values": list(o.values)} for o in options],
                "variants": [serialize_variant(v) for v in variants],
            }
        }
        self._request("PUT", f"/products/{product_id}.json", product_id=product_id, json=payload)

    def set_variant_inventory(self, variant_id: int, quantity: int) -> None:
        if not self.location_id:
            raise BundleError("BACKEND_NOT_CONFIGURED", backend="SHOPIFY_LOCATION_ID")
        self._request(
            "POST",
            "/inventory_levels/set.json",
            json={
                "location_id": self.location_id,
                "inventory_item_id": self._inventory_item_id(variant_id),
                "available": quantity,
            },
        )

    def _inventory_item_id(self, variant_id: int) -> int:
        with self._items_lock:
            item_id = self._inventory_items.get(variant_id)
            if item_id is not None:
                self._inventory_items.move_to_end(variant_id)
                return item_id
        response = self._request("GET", f"/variants/{variant_id}.json")
        item_id = response.json()["variant"]["inventory_item_id"]
        self._remember_item(variant_id, item_id)
        return item_id

    def _remember_items(self, product: Product) -> Product:
        for variant in product.variants:
            if variant.id is not None and variant.inventory_item_id is not None:
                self._remember_item(variant.id, variant.inventory_item_id)
        return product

    def _remember_item(self, variant_id: int, item_id: int) -> None:
        """Keep the most recently used inventory item ids, up to INVENTORY_ITEM_CACHE_SIZE."""
        with self._items_lock:
            self._inventory_items[variant_id] = item_id
            self._inventory_items.move_to_end(variant_id)
            while len(self._inventory_items) > INVENTORY_ITEM_CACHE_SIZE:
                self._inventory_items.popitem(last=False)


# Verify implementation at import time
if not issubclass(ShopifyCatalogBackend, CatalogBackend):
    raise TypeError("ShopifyCatalogBackend does not implement CatalogBackend protocol")
