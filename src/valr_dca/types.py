from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Literal, Mapping


class OrderIdGranularity(str, Enum):
    AUTO = "auto"
    DAILY = "daily"
    HOURLY = "hourly"


class LookupFailurePolicy(str, Enum):
    """What an order-status lookup error means for the duplicate check."""

    ASSUME_NOT_PLACED = "assume_not_placed"
    ASSUME_PLACED = "assume_placed"


class PlacementFailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


class OutcomeKind(str, Enum):
    PLACED = "placed"
    SKIPPED_NO_MARKET = "skipped_no_market"
    SKIPPED_INSUFFICIENT_BALANCE = "skipped_insufficient_balance"
    SKIPPED_BELOW_MINIMUM_QUOTE = "skipped_below_minimum_quote"
    SKIPPED_BELOW_MINIMUM_BASE = "skipped_below_minimum_base"
    SKIPPED_DUPLICATE_ORDER = "skipped_duplicate_order"
    SKIPPED_NOT_CONFIGURED = "skipped_not_configured"
    FAILED_PLACEMENT = "failed_placement"


@dataclass(frozen=True)
class DcaPolicy:
    execution_hours: frozenset[int]
    currencies: tuple[str, ...]
    budgets: Mapping[str, Decimal]
    fiat_currency: str = "ZAR"
    order_id_granularity: OrderIdGranularity = OrderIdGranularity.AUTO
    lookup_failure: LookupFailurePolicy = LookupFailurePolicy.ASSUME_NOT_PLACED
    placement_failure: PlacementFailurePolicy = PlacementFailurePolicy.ABORT

    def __post_init__(self) -> None:
        object.__setattr__(self, "budgets", MappingProxyType(dict(self.budgets)))

    @property
    def executions_per_day(self) -> int:
        return len(self.execution_hours)

    @property
    def include_hour_in_order_id(self) -> bool:
        if self.order_id_granularity is OrderIdGranularity.AUTO:
            return self.executions_per_day > 1
        return self.order_id_granularity is OrderIdGranularity.HOURLY

    def pair_for(self, currency: str) -> str:
        return f"{currency}{self.fiat_currency}".upper()


@dataclass(frozen=True)
class Balance:
    currency: str
    available: Decimal


@dataclass(frozen=True)
class PairInfo:
    symbol: str
    base_currency: str
    quote_currency: str
    min_base_amount: Decimal
    min_quote_amount: Decimal
    base_decimal_places: int | None = None


@dataclass(frozen=True)
class MarketQuote:
    pair: str
    ask_price: Decimal
    ask_price_text: str


@dataclass(frozen=True)
class OrderStatus:
    client_order_id: str
    status: str
    order_id: str | None = None


@dataclass(frozen=True)
class LimitOrder:
    pair: str
    quantity: Decimal
    price: str
    client_order_id: str
    side: Literal["BUY", "SELL"] = "BUY"
    post_only_reprice: bool = True
    time_in_force: Literal["GTC", "FOK", "IOC"] = "GTC"


@dataclass(frozen=True)
class RunOutcome:
    currency: str
    pair: str
    kind: OutcomeKind
    budget: Decimal | None = None
    order_id: str | None = None
    quantity: Decimal | None = None
    price: str | None = None
    client_order_id: str | None = None
    detail: str = ""

    @property
    def placed(self) -> bool:
        return self.kind is OutcomeKind.PLACED


@dataclass(frozen=True)
class RunReport:
    executed: bool
    hour: int
    outcomes: tuple[RunOutcome, ...] = ()
    available_balance: Decimal | None = None
    remaining_balance: Decimal | None = None
    forced: bool = False

    def __iter__(self) -> Iterator[RunOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def placed(self) -> list[RunOutcome]:
        return [o for o in self.outcomes if o.placed]

    def to_dict(self) -> dict[str, object]:
        return {
            "executed": self.executed,
            "forced": self.forced,
            "hour_utc": self.hour,
            "available_balance": _text(self.available_balance),
            "remaining_balance": _text(self.remaining_balance),
            "outcomes": [
                {
                    "currency": o.currency,
                    "pair": o.pair,
                    "outcome": o.kind.value,
                    "budget": _text(o.budget),
                    "quantity": _text(o.quantity),
                    "price": o.price,
                    "client_order_id": o.client_order_id,
                    "order_id": o.order_id,
                    "detail": o.detail,
                }
                for o in self.outcomes
            ],
        }


def _text(value: Decimal | None) -> str | None:
    return None if value is None else str(value)
