from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from valr_dca.errors import GatewayError, OrderNotFound
from valr_dca.types import Balance, DcaPolicy, LimitOrder, MarketQuote, OrderStatus, PairInfo

KEY = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
SECRET = "fedcba9876543210fedcba9876543210fedcba9876543210fedcba9876543210"


class FakeGateway:
    """In-memory exchange. Placed orders show up as FILLED on later lookups."""

    def __init__(
        self,
        balances: dict[str, str] | None = None,
        pairs: list[PairInfo] | None = None,
        asks: dict[str, str] | None = None,
    ) -> None:
        self.balances = {k: Decimal(v) for k, v in (balances or {"ZAR": "5000"}).items()}
        self.pairs = pairs if pairs is not None else [pair("BTCZAR")]
        self.asks = asks if asks is not None else {"BTCZAR": "1000000"}
        self.statuses: dict[str, str] = {}
        self.placed: list[LimitOrder] = []
        self.calls: list[str] = []
        self.fail_lookup: Exception | None = None
        self.fail_place_for: set[str] = set()
        self.fail_balances = False
        self.fail_pairs = False
        self.fail_summary = False

    def get_balances(self) -> list[Balance]:
        self.calls.append("balances")
        if self.fail_balances:
            raise GatewayError("balances unavailable", status_code=503)
        return [Balance(c, a) for c, a in self.balances.items()]

    def get_currency_pairs(self) -> list[PairInfo]:
        self.calls.append("pairs")
        if self.fail_pairs:
            raise GatewayError("pairs unavailable", status_code=503)
        return list(self.pairs)

    def get_market_summary(self) -> list[MarketQuote]:
        self.calls.append("summary")
        if self.fail_summary:
            raise GatewayError("summary unavailable", status_code=503)
        return [MarketQuote(p, Decimal(a), a) for p, a in self.asks.items()]

    def get_order_status_by_client_id(self, pair: str, client_order_id: str) -> OrderStatus:
        self.calls.append(f"status:{client_order_id}")
        if self.fail_lookup is not None:
            raise self.fail_lookup
        if client_order_id not in self.statuses:
            raise OrderNotFound(client_order_id, status_code=404)
        return OrderStatus(client_order_id, self.statuses[client_order_id], order_id="x")

    def place_limit_buy_order(self, order: LimitOrder) -> str:
        self.calls.append(f"place:{order.pair}")
        if order.pair in self.fail_place_for:
            raise GatewayError(f"rejected {order.pair}", status_code=400)
        self.placed.append(order)
        self.statuses[order.client_order_id] = "FILLED"
        return f"order-{len(self.placed)}"


def pair(symbol: str, min_quote: str = "10", min_base: str = "0.0001", places: int | None = None) -> PairInfo:
    return PairInfo(
        symbol=symbol,
        base_currency=symbol[:-3],
        quote_currency=symbol[-3:],
        min_base_amount=Decimal(min_base),
        min_quote_amount=Decimal(min_quote),
        base_decimal_places=places,
    )


def policy(currencies: list[str], amounts: list[str], hours: set[int] | None = None, **kwargs) -> DcaPolicy:
    return DcaPolicy(
        execution_hours=frozenset(hours or {15}),
        currencies=tuple(currencies),
        budgets={c: Decimal(a) for c, a in zip(currencies, amounts)},
        **kwargs,
    )


def at_hour(hour: int, day: int = 16) -> datetime:
    return datetime(2026, 1, day, hour, 5, tzinfo=timezone.utc)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dca_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in (
        "DCA_EXECUTION_HOURS",
        "DCA_FIAT_CURRENCY",
        "DCA_ORDER_ID_GRANULARITY",
        "DCA_ORDER_LOOKUP_FAILURE",
        "DCA_PLACEMENT_FAILURE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("API_KEY", KEY)
    monkeypatch.setenv("API_SECRET", SECRET)
    monkeypatch.setenv("DCA_CURRENCIES", "BTC,ETH")
    monkeypatch.setenv("DCA_AMOUNTS", "100,50")
    return monkeypatch
