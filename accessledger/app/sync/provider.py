"""Checkout provider integration used by the reconciliation path."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from pydantic import ValidationError

from .exceptions import UpstreamFetchFailure
from .models import CheckoutTransaction, LineItem, LineItemError

logger = logging.getLogger("sync.provider")


class CheckoutProvider(Protocol):
    """On-demand transaction lookup API of the external checkout provider."""

    def fetch_transaction(self, transaction_id: str) -> CheckoutTransaction:
        """Return the transaction or raise :class:`UpstreamFetchFailure`."""

    def resolve_line_item(self, transaction_id: str, item: LineItem) -> LineItem:
        """Fill in the product identifier of ``item`` with a per-item lookup."""


def _minor_to_major(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    return round(float(value) / 100, 2)


def _line_item_from_payload(payload: Mapping[str, Any]) -> LineItem:
    price = _price_of(payload)
    return LineItem(
        raw_product_id=payload.get("product_id") or price.get("product"),
        price_id=payload.get("price_id") or price.get("id"),
        name=payload.get("name") or payload.get("description"),
        quantity=int(payload.get("quantity") or 1),
        unit_amount=_minor_to_major(payload.get("unit_amount", price.get("unit_amount"))),
    )


def _price_of(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    price = payload.get("price")
    return price if isinstance(price, Mapping) else {}


def _item_label(payload: Mapping[str, Any]) -> str:
    price = _price_of(payload)
    for candidate in (payload.get("product_id"), price.get("product"), payload.get("price_id"), price.get("id")):
        if candidate and isinstance(candidate, str):
            return candidate
    return str(payload.get("name") or payload.get("description") or "")


def _parse_line_items(transaction_id: str, items: Iterable[Any]) -> Tuple[List[LineItem], List[LineItemError]]:
    parsed: List[LineItem] = []
    rejected: List[LineItemError] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        try:
            parsed.append(_line_item_from_payload(item))
            continue
        except ValidationError as exc:
            error = LineItemError.from_validation_error(_item_label(item), exc)
        except (TypeError, ValueError) as exc:
            error = LineItemError(raw_id=_item_label(item), reason=f"malformed line item ({exc})")
        logger.warning(
            "Skipping malformed line item %r: %s",
            error.raw_id,
            error.reason,
            extra={"transaction_id": transaction_id},
        )
        rejected.append(error)
    return parsed, rejected


def transaction_from_payload(payload: Mapping[str, Any]) -> CheckoutTransaction:
    """Translate a provider transaction document into a :class:`CheckoutTransaction`.

    Amounts arrive in minor currency units and are converted to major units.
    Line items are parsed one at a time; an unparseable item lands in
    ``rejected_items`` instead of failing the whole transaction.
    """

    customer = payload.get("customer_details") if isinstance(payload.get("customer_details"), Mapping) else {}
    items = payload.get("line_items") or []
    if isinstance(items, Mapping):
        items = items.get("data") or []
    transaction_id = str(payload.get("id") or payload.get("transaction_id") or "")
    line_items, rejected_items = _parse_line_items(transaction_id, items)
    return CheckoutTransaction(
        transaction_id=transaction_id,
        email=str(payload.get("email") or payload.get("customer_email") or customer.get("email") or ""),
        account_id=payload.get("account_id") or payload.get("client_reference_id"),
        line_items=line_items,
        rejected_items=rejected_items,
    )


class HttpCheckoutProvider:
    """JSON-over-HTTPS client for the checkout provider's lookup API."""

    def __init__(self, *, base_url: str, api_key: Optional[str] = None, timeout: float = 5.0) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def fetch_transaction(self, transaction_id: str) -> CheckoutTransaction:
        payload = self._get_json(f"/transactions/{urllib_parse.quote(transaction_id, safe='')}", transaction_id)
        try:
            transaction = transaction_from_payload(payload)
        except (ValidationError, TypeError, ValueError) as exc:
            raise UpstreamFetchFailure(transaction_id, f"malformed transaction payload: {exc}") from exc
        if transaction.transaction_id != transaction_id:
            raise UpstreamFetchFailure(
                transaction_id,
                f"provider returned transaction {transaction.transaction_id!r}",
            )
        return transaction

    def resolve_line_item(self, transaction_id: str, item: LineItem) -> LineItem:
        if item.raw_product_id or not item.price_id:
            return item
        payload = self._get_json(f"/prices/{urllib_parse.quote(item.price_id, safe='')}", transaction_id)
        product = payload.get("product")
        if isinstance(product, Mapping):
            product_id = product.get("id")
            name = product.get("name")
        else:
            product_id = product
            name = payload.get("product_name")
        return item.model_copy(
            update={
                "raw_product_id": str(product_id) if product_id else None,
                "name": item.name or name,
            }
        )

    def _get_json(self, path: str, transaction_id: str) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        req = urllib_request.Request(url, headers=headers, method="GET")
        try:
            with urllib_request.urlopen(req, timeout=self._timeout) as response:
                body = response.read()
            payload = json.loads(body.decode("utf-8"))
        except (urllib_error.URLError, urllib_error.HTTPError, json.JSONDecodeError, UnicodeDecodeError, TimeoutError) as exc:
            logger.warning(
                "Checkout provider lookup failed",
                extra={"provider_path": path, "transaction_id": transaction_id, "error": str(exc)},
            )
            raise UpstreamFetchFailure(transaction_id, str(exc)) from exc
        if not isinstance(payload, dict):
            raise UpstreamFetchFailure(transaction_id, "unexpected response shape")
        return payload


class UnconfiguredCheckoutProvider:
    """Placeholder provider used when no lookup API is configured."""

    def fetch_transaction(self, transaction_id: str) -> CheckoutTransaction:
        raise UpstreamFetchFailure(transaction_id, "checkout provider lookup is not configured")

    def resolve_line_item(self, transaction_id: str, item: LineItem) -> LineItem:
        if item.raw_product_id:
            return item
        raise UpstreamFetchFailure(transaction_id, "checkout provider lookup is not configured")


__all__ = [
    "CheckoutProvider",
    "HttpCheckoutProvider",
    "UnconfiguredCheckoutProvider",
    "transaction_from_payload",
]
