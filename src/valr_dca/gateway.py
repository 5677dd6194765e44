from __future__ import annotations

from typing import Protocol

from .types import Balance, LimitOrder, MarketQuote, OrderStatus, PairInfo


class ExchangeGateway(Protocol):
    """What the runner needs from an exchange.

    Every method blocks until the exchange answers and raises
    ``errors.GatewayError`` on transport, auth or rate-limit failures.
    ``get_order_status_by_client_id`` raises ``errors.OrderNotFound`` when the
    exchange has no order under that id.
    """

    def get_balances(self) -> list[Balance]: ...

    def get_currency_pairs(self) -> list[PairInfo]: ...

    def get_market_summary(self) -> list[MarketQuote]: ...

    def get_order_status_by_client_id(self, pair: str, client_order_id: str) -> OrderStatus: ...

    def place_limit_buy_order(self, order: LimitOrder) -> str: ...
