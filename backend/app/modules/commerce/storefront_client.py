# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Commerce Backend
Clean interface over the storefront that owns carts and variants.
The reconciler only ever talks to CommerceBackend; the Shopify
Storefront GraphQL implementation lives here.

Every remote failure surfaces as CartOperationFailedError carrying the
remote detail: transport errors, non-2xx statuses, GraphQL `errors`,
mutation `userErrors` and missing payloads. Nothing is retried here;
cart mutations are not idempotent on the remote side.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from app.api.middleware.error_handler import (
    CartOperationFailedError,
    InvalidConfigError,
    VariantNotFoundError,
)
from app.config import Settings
from app.models.cart import (
    Cart,
    CartAttribute,
    CartLine,
    CartLineInput,
    CommerceConfig,
    Money,
    Product,
    Variant,
)
from app.utils.logger import get_logger

log = get_logger(__name__)

STOREFRONT_URL = "https://{store}.myshopify.com/api/{version}/graphql.json"
TOKEN_HEADER = "X-Shopify-Storefront-Access-Token"

# ─── GraphQL Documents ───────────────────────────────────────────────────────

_CART_FIELDS = """
    id
    checkoutUrl
    totalQuantity
    lines(first: 50) {
      edges {
        node {
          id
          quantity
          merchandise {
            ... on ProductVariant {
              id
              title
              price { amount currencyCode }
            }
          }
          attributes { key value }
        }
      }
    }
"""

GET_CART_QUERY = (
    "query getCart($cartId: ID!) {\n  cart(id: $cartId) {"
    + _CART_FIELDS
    + "  }\n}"
)

CART_CREATE_MUTATION = (
    "mutation cartCreate($input: CartInput) {\n"
    "  cartCreate(input: $input) {\n    cart {"
    + _CART_FIELDS
    + "    }\n    userErrors { field message }\n  }\n}"
)

CART_LINES_ADD_MUTATION = (
    "mutation cartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {\n"
    "  cartLinesAdd(cartId: $cartId, lines: $lines) {\n    cart {"
    + _CART_FIELDS
    + "    }\n    userErrors { field message }\n  }\n}"
)

CART_LINES_UPDATE_MUTATION = (
    "mutation cartLinesUpdate($cartId: ID!, $lines: [CartLineUpdateInput!]!) {\n"
    "  cartLinesUpdate(cartId: $cartId, lines: $lines) {\n    cart {"
    + _CART_FIELDS
    + "    }\n    userErrors { field message }\n  }\n}"
)

FIND_PRODUCTS_QUERY = """
query getProducts {
  products(first: 20) {
    edges {
      node {
        id
        title
        handle
        variants(first: 10) {
          edges {
            node {
              id
              title
              price { amount currencyCode }
              availableForSale
            }
          }
        }
      }
    }
  }
}
"""

GET_VARIANT_QUERY = """
query getProductVariant($id: ID!) {
  node(id: $id) {
    ... on ProductVariant {
      id
      title
      price { amount currencyCode }
      availableForSale
      product { title handle }
    }
  }
}
"""


# ─── Abstract Interface ──────────────────────────────────────────────────────

class CommerceBackend(ABC):
    """Cart and catalogue operations the reconciler and routes rely on."""

    @abstractmethod
    async def find_products(self, config: CommerceConfig) -> list[Product]:
        ...

    @abstractmethod
    async def get_cart(self, config: CommerceConfig, cart_id: str) -> Optional[Cart]:
        """Return the cart, or None if the backend does not know the id."""

    @abstractmethod
    async def mutate_cart(
        self,
        config: CommerceConfig,
        cart_id: Optional[str],
        lines: list[CartLineInput],
    ) -> Cart:
        """
        Apply line changes and return the recomputed cart.
        cart_id None creates a new cart holding `lines`.
        """

    @abstractmethod
    async def get_variant(self, config: CommerceConfig, variant_id: str) -> Variant:
        """Raises VariantNotFoundError when the id does not resolve to a variant."""

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""


# ─── Payload Parsing ─────────────────────────────────────────────────────────

def _edges(conn: Optional[dict]) -> list[dict]:
    return [edge["node"] for edge in (conn or {}).get("edges", []) if edge.get("node")]


def parse_cart(node: dict) -> Cart:
    lines = []
    for line in _edges(node.get("lines")):
        merch = line.get("merchandise") or {}
        lines.append(
            CartLine(
                id=line["id"],
                merchandise_id=merch.get("id", ""),
                quantity=line.get("quantity", 0),
                title=merch.get("title", ""),
                price=Money.model_validate(merch["price"]) if merch.get("price") else None,
                attributes=[CartAttribute(**a) for a in line.get("attributes") or []],
            )
        )
    return Cart(
        id=node["id"],
        checkout_url=node.get("checkoutUrl") or "",
        total_quantity=node.get("totalQuantity") or 0,
        lines=lines,
    )


def parse_variant(node: dict) -> Variant:
    product = node.get("product") or {}
    return Variant(
        id=node["id"],
        title=node.get("title", ""),
        price=Money.model_validate(node["price"]) if node.get("price") else None,
        available_for_sale=node.get("availableForSale", True),
        product_title=product.get("title", ""),
    )


def _line_payload(line: CartLineInput) -> dict:
    payload: dict[str, Any] = {
        "merchandiseId": line.merchandise_id,
        "quantity": line.quantity,
        "attributes": [a.model_dump() for a in line.attributes],
    }
    if line.line_id:
        payload["id"] = line.line_id
    return payload


# ─── Shopify Storefront Implementation ───────────────────────────────────────

class ShopifyStorefrontClient(CommerceBackend):
    """Shopify Storefront GraphQL API over one pooled AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, api_version: str = "2024-10") -> None:
        self._client = client
        self.api_version = api_version

    def endpoint(self, config: CommerceConfig) -> str:
        return STOREFRONT_URL.format(store=config.store_name, version=self.api_version)

    async def _execute(
        self,
        config: CommerceConfig,
        query: str,
        variables: Optional[dict] = None,
        *,
        operation: str,
    ) -> dict:
        payload: dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables

        log.debug("storefront_request", operation=operation, store=config.store_name)
        try:
            resp = await self._client.post(
                self.endpoint(config),
                json=payload,
                headers={TOKEN_HEADER: config.storefront_access_token},
            )
        except httpx.HTTPError as exc:
            raise CartOperationFailedError(
                f"Storefront request '{operation}' failed.",
                detail=f"{type(exc).__name__}: {exc}",
            ) from exc

        if resp.status_code >= 400:
            raise CartOperationFailedError(
                f"Storefront request '{operation}' failed.",
                detail=f"HTTP {resp.status_code}: {resp.text[:500]}",
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise CartOperationFailedError(
                f"Storefront returned a non-JSON body for '{operation}'.",
                detail=resp.text[:500],
            ) from exc

        if body.get("errors"):
            raise CartOperationFailedError(
                f"Storefront GraphQL errors in '{operation}'.",
                detail=", ".join(e.get("message", str(e)) for e in body["errors"]),
            )
        data = body.get("data")
        if data is None:
            raise CartOperationFailedError(
                f"No result data received from Storefront for '{operation}'."
            )
        return data

    async def _cart_mutation(
        self,
        config: CommerceConfig,
        mutation: str,
        variables: dict,
        field: str,
    ) -> Cart:
        data = await self._execute(config, mutation, variables, operation=field)
        result = data.get(field)
        if not result:
            raise CartOperationFailedError(f"No result data received for '{field}'.")
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise CartOperationFailedError(
                f"Storefront rejected '{field}'.",
                detail=", ".join(
                    f"{'.'.join(e.get('field') or [])}: {e.get('message')}"
                    for e in user_errors
                ),
            )
        if not result.get("cart"):
            raise CartOperationFailedError(f"'{field}' returned no cart.")
        return parse_cart(result["cart"])

    async def find_products(self, config: CommerceConfig) -> list[Product]:
        data = await self._execute(config, FIND_PRODUCTS_QUERY, operation="products")
        products = []
        for node in _edges(data.get("products")):
            variants = [parse_variant(v) for v in _edges(node.get("variants"))]
            for v in variants:
                v.product_title = node.get("title", "")
            products.append(
                Product(
                    id=node["id"],
                    title=node.get("title", ""),
                    handle=node.get("handle", ""),
                    variants=variants,
                )
            )
        return products

    async def get_cart(self, config: CommerceConfig, cart_id: str) -> Optional[Cart]:
        data = await self._execute(
            config, GET_CART_QUERY, {"cartId": cart_id}, operation="cart"
        )
        node = data.get("cart")
        return parse_cart(node) if node else None

    async def mutate_cart(
        self,
        config: CommerceConfig,
        cart_id: Optional[str],
        lines: list[CartLineInput],
    ) -> Cart:
        if not lines:
            raise InvalidConfigError("A cart mutation needs at least one line.")

        if cart_id is None:
            return await self._cart_mutation(
                config,
                CART_CREATE_MUTATION,
                {"input": {"lines": [_line_payload(ln) for ln in lines]}},
                "cartCreate",
            )

        cart: Optional[Cart] = None
        updates = [ln for ln in lines if ln.line_id]
        adds = [ln for ln in lines if not ln.line_id]
        if updates:
            cart = await self._cart_mutation(
                config,
                CART_LINES_UPDATE_MUTATION,
                {"cartId": cart_id, "lines": [_line_payload(ln) for ln in updates]},
                "cartLinesUpdate",
            )
        if adds:
            cart = await self._cart_mutation(
                config,
                CART_LINES_ADD_MUTATION,
                {"cartId": cart_id, "lines": [_line_payload(ln) for ln in adds]},
                "cartLinesAdd",
            )
        return cart

    async def get_variant(self, config: CommerceConfig, variant_id: str) -> Variant:
        data = await self._execute(
            config, GET_VARIANT_QUERY, {"id": variant_id}, operation="node"
        )
        node = data.get("node")
        if not node or not node.get("id"):
            raise VariantNotFoundError(variant_id)
        return parse_variant(node)

    async def aclose(self) -> None:
        await self._client.aclose()


def make_commerce_backend(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> CommerceBackend:
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(settings.shopify_timeout_s))
    return ShopifyStorefrontClient(client, api_version=settings.shopify_api_version)
