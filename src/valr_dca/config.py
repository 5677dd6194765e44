"""Resolve a validated, immutable DcaPolicy from Settings.

List values are comma separated. Whitespace around each element is stripped
but empty elements are kept: ``"BTC,,ETH"`` is three currencies, the middle
one an empty symbol that later finds no market. A wholly unset or blank list
is empty.

Empty hour or amount elements are rejected rather than read as 0. The
original TypeScript deployment coerced ``Number("")`` to 0, so
``DCA_CURRENCIES=BTC,ETH,`` with ``DCA_AMOUNTS=100,50,`` loaded there with a
zero budget for the empty pair; here it raises ``InvalidBudget``, and an
empty hour raises ``InvalidExecutionHour`` instead of scheduling hour 0.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar

from .errors import (
    ConfigurationError,
    CurrencyBudgetMismatch,
    DuplicateCurrency,
    InvalidBudget,
    InvalidCredentialShape,
    InvalidExecutionHour,
    MissingCredentials,
)
from .settings import Settings
from .types import DcaPolicy, LookupFailurePolicy, OrderIdGranularity, PlacementFailurePolicy

DEFAULT_EXECUTION_HOUR = 15
CREDENTIAL_LENGTH = 64

E = TypeVar("E", bound=Enum)


def split_list(raw: str | None) -> list[str]:
    if raw is None or not raw.strip():
        return []
    return [val.strip() for val in raw.split(",")]


def check_credentials(api_key: str | None, api_secret: str | None) -> None:
    if not api_key or not api_secret:
        raise MissingCredentials("API_KEY and API_SECRET environment variables are required")
    if len(api_key) != CREDENTIAL_LENGTH or len(api_secret) != CREDENTIAL_LENGTH:
        raise InvalidCredentialShape(
            f"Invalid VALR credentials: API_KEY must be {CREDENTIAL_LENGTH} characters (got {len(api_key)}), "
            f"API_SECRET must be {CREDENTIAL_LENGTH} characters (got {len(api_secret)})"
        )


def parse_execution_hours(raw: str | None) -> frozenset[int]:
    values = split_list(raw)
    if not values:
        return frozenset({DEFAULT_EXECUTION_HOUR})

    hours: set[int] = set()
    for val in values:
        try:
            hour = int(val)
        except ValueError as exc:
            raise InvalidExecutionHour(f"DCA_EXECUTION_HOURS element {val!r} is not an integer hour") from exc
        if not 0 <= hour <= 23:
            raise InvalidExecutionHour(f"DCA_EXECUTION_HOURS element {hour} is outside 0-23")
        hours.add(hour)
    return frozenset(hours)


def parse_budgets(raw: str | None) -> list[Decimal]:
    budgets: list[Decimal] = []
    for val in split_list(raw):
        try:
            amount = Decimal(val)
        except InvalidOperation as exc:
            raise InvalidBudget(f"DCA_AMOUNTS element {val!r} is not a number") from exc
        if not amount.is_finite() or amount < 0:
            raise InvalidBudget(f"DCA_AMOUNTS element {val!r} must be a non-negative amount")
        budgets.append(amount)
    return budgets


def check_lengths(currencies: list[str], budgets: list[Decimal]) -> None:
    if len(currencies) != len(budgets):
        raise CurrencyBudgetMismatch(len(currencies), len(budgets))


def _choice(enum_cls: type[E], raw: str, key: str) -> E:
    try:
        return enum_cls(raw.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{key}={raw!r} is not one of: {allowed}") from exc


def resolve_policy(settings: Settings) -> DcaPolicy:
    check_credentials(settings.api_key, settings.api_secret)

    currencies = split_list(settings.dca_currencies)
    budgets = parse_budgets(settings.dca_amounts)
    check_lengths(currencies, budgets)

    seen: set[str] = set()
    for currency in currencies:
        symbol = currency.upper()
        if symbol in seen:
            raise DuplicateCurrency(f"DCA_CURRENCIES lists {symbol} more than once")
        seen.add(symbol)

    fiat = settings.dca_fiat_currency.strip().upper()
    if not fiat:
        raise ConfigurationError("DCA_FIAT_CURRENCY must not be blank")

    return DcaPolicy(
        execution_hours=parse_execution_hours(settings.dca_execution_hours),
        currencies=tuple(c.upper() for c in currencies),
        budgets=dict(zip((c.upper() for c in currencies), budgets)),
        fiat_currency=fiat,
        order_id_granularity=_choice(
            OrderIdGranularity, settings.dca_order_id_granularity, "DCA_ORDER_ID_GRANULARITY"
        ),
        lookup_failure=_choice(LookupFailurePolicy, settings.dca_order_lookup_failure, "DCA_ORDER_LOOKUP_FAILURE"),
        placement_failure=_choice(PlacementFailurePolicy, settings.dca_placement_failure, "DCA_PLACEMENT_FAILURE"),
    )


def load_policy() -> DcaPolicy:
    """Read the environment afresh. Called at the top of every run."""
    return resolve_policy(Settings())
