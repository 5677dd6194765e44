from __future__ import annotations

import hashlib
import hmac
import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from .errors import GatewayError, OrderNotFound
from .log import get_logger
from .settings import Settings
from .types import Balance, LimitOrder, MarketQuote, OrderStatus, PairInfo

logger = get_logger(__name__)


def sign_request(api_secret: str, timestamp: int, verb: str, path: str, body: str = "") -> str:
    payload = f"{timestamp}{verb.upper()}{path}{body}"
    return hmac.new(api_secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha512).hexdigest()


def _decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise GatewayError(f"Unparseable {field} from exchange: {value!r}") from exc


def _normalize_status(raw: Any) -> str:
    return str(raw or "").strip().upper().replace(" ", "_")


class ValrClient:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.valr.com",
        timeout: float = 30.0,
        dry_run: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.dry_run = dry_run
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, dry_run: bool | None = None) -> "ValrClient":
        if not settings.api_key or not settings.api_secret:
            raise ValueError("API_KEY and API_SECRET are required to build a VALR client")
        return cls(
            api_key=settings.api_key,
            api_secret=settings.api_secret,
            base_url=settings.valr_base_url,
            timeout=settings.valr_timeout_seconds,
            dry_run=settings.dry_run if dry_run is None else dry_run,
        )

    def _headers(self, verb: str, path: str, body: str) -> dict[str, str]:
        timestamp = int(time.time() * 1000)
        return {
            "Content-Type": "application/json; charset=UTF-8",
            "X-VALR-API-KEY": self.api_key,
            "X-VALR-SIGNATURE": sign_request(self.api_secret, timestamp, verb, path, body),
            "X-VALR-TIMESTAMP": str(timestamp),
        }

    def _request(self, verb: str, path: str, payload: dict[str, Any] | None = None, signed: bool = True) -> Any:
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else ""
        headers = self._headers(verb, path, body) if signed else {"Accept": "application/json"}
        try:
            resp = self.session.request(
                verb,
                f"{self.base_url}{path}",
                data=body or None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"{verb} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise GatewayError(f"{verb} {path} returned {resp.status_code}: {resp.text[:200]}", status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise GatewayError(f"{verb} {path} returned non-JSON body") from exc

    def get_balances(self) -> list[Balance]:
        rows = self._request("GET", "/v1/account/balances") or []
        try:
            return [Balance(currency=str(r["currency"]), available=_decimal(r.get("available"), "available")) for r in rows]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise GatewayError(f"Malformed balance row from exchange: {exc!r}") from exc

    def get_currency_pairs(self) -> list[PairInfo]:
        rows = self._request("GET", "/v1/public/pairs", signed=False) or []
        pairs: list[PairInfo] = []
        try:
            for r in rows:
                places = r.get("baseDecimalPlaces")
                pairs.append(
                    PairInfo(
                        symbol=str(r["symbol"]),
                        base_currency=str(r.get("baseCurrency", "")),
                        quote_currency=str(r.get("quoteCurrency", "")),
                        min_base_amount=_decimal(r.get("minBaseAmount"), "minBaseAmount"),
                        min_quote_amount=_decimal(r.get("minQuoteAmount"), "minQuoteAmount"),
                        base_decimal_places=int(places) if places not in (None, "") else None,
                    )
                )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise GatewayError(f"Malformed currency pair row from exchange: {exc!r}") from exc
        return pairs

    def get_market_summary(self) -> list[MarketQuote]:
        rows = self._request("GET", "/v1/public/marketsummary", signed=False) or []
        quotes: list[MarketQuote] = []
        try:
            for r in rows:
                ask = r.get("askPrice")
                if ask in (None, ""):
                    continue
                pair = str(r["currencyPair"])
                price = _decimal(ask, "askPrice")
                if not price.is_finite() or price <= 0:
                    # An empty order book reports a zero ask; no market to buy into.
                    logger.warning("ask_price_unusable", pair=pair, ask=str(ask))
                    continue
                quotes.append(MarketQuote(pair=pair, ask_price=price, ask_price_text=str(ask)))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise GatewayError(f"Malformed market summary row from exchange: {exc!r}") from exc
        return quotes

    def get_order_status_by_client_id(self, pair: str, client_order_id: str) -> OrderStatus:
        try:
            data = self._request("GET", f"/v1/orders/{pair}/customerorderid/{client_order_id}")
        except GatewayError as exc:
            if exc.status_code == 404:
                raise OrderNotFound(f"No order with customerOrderId {client_order_id}", status_code=404) from exc
            raise
        if not isinstance(data, dict):
            raise GatewayError(f"Unexpected order status payload for {client_order_id}: {data!r}")
        raw_status = data.get("orderStatusType", data.get("orderStatus"))
        order_id = data.get("orderId")
        return OrderStatus(
            client_order_id=client_order_id,
            status=_normalize_status(raw_status),
            order_id=str(order_id) if order_id is not None else None,
        )

    def place_limit_buy_order(self, order: LimitOrder) -> str:
        payload = {
            "side": order.side,
            "quantity": format(order.quantity, "f"),
            "price": order.price,
            "pair": order.pair,
            "customerOrderId": order.client_order_id,
            "postOnlyReprice": order.post_only_reprice,
            "timeInForce": order.time_in_force,
        }

        if self.dry_run:
            logger.info("order_simulated", **payload)
            return f"dry-run:{order.client_order_id}"

        logger.info("order_submitting", pair=order.pair, quantity=payload["quantity"], price=order.price)
        data = self._request("POST", "/v1/orders/limit", payload)
        if not isinstance(data, dict) or not data.get("id"):
            raise GatewayError(f"Order placement for {order.client_order_id} returned no id: {data!r}")
        return str(data["id"])
