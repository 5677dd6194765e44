from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FakeGateway, pair
from valr_dca.allocation import Allocator, meets_min_base, per_run_budget, size_order
from valr_dca.balance import BalanceTracker
from valr_dca.errors import PolicyViolation, RunAborted
from valr_dca.idempotency import IdempotencyGuard
from valr_dca.types import OutcomeKind, PlacementFailurePolicy

NOW = datetime(2026, 1, 16, 15, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("total", "executions", "expected"),
    [("100", 3, "33"), ("200", 3, "67"), ("10", 4, "3"), ("50", 4, "13"), ("1000", 1, "1000"), ("0", 2, "0")],
)
def test_per_run_budget_rounds_half_up(total: str, executions: int, expected: str) -> None:
    assert per_run_budget(Decimal(total), executions) == Decimal(expected)


def test_per_run_budget_is_stable_across_calls() -> None:
    assert {per_run_budget(Decimal("100"), 3) for _ in range(5)} == {Decimal("33")}


def test_per_run_budget_needs_an_execution() -> None:
    with pytest.raises(PolicyViolation):
        per_run_budget(Decimal("100"), 0)


def test_size_order_exact_decimal() -> None:
    assert size_order(Decimal("1000"), Decimal("1000000")) == Decimal("0.001")
    assert size_order(Decimal("1000"), Decimal("2000000")) == Decimal("0.0005")


def test_size_order_truncates_to_base_places() -> None:
    assert size_order(Decimal("100"), Decimal("3"), base_decimal_places=4) == Decimal("33.3333")


def test_size_order_rejects_bad_price() -> None:
    with pytest.raises(PolicyViolation):
        size_order(Decimal("100"), Decimal("0"))


def test_min_base_gate() -> None:
    assert meets_min_base(Decimal("0.001"), Decimal("0.001"))
    assert not meets_min_base(Decimal("0.0005"), Decimal("0.001"))


def allocate(gateway: FakeGateway, budget: str | None, remaining: str = "5000", min_quote: str = "10", min_base: str = "0.0001"):
    allocator = Allocator(gateway, IdempotencyGuard(gateway, include_hour=False))
    quotes = {q.pair: q for q in gateway.get_market_summary()}
    gateway.calls.clear()
    return allocator.allocate(
        "BTC",
        "BTCZAR",
        Decimal(budget) if budget is not None else None,
        BalanceTracker.opening(Decimal(remaining)),
        pair("BTCZAR", min_quote=min_quote, min_base=min_base),
        quotes.get,
        NOW,
    )


def test_below_minimum_quote_places_nothing(gateway: FakeGateway) -> None:
    outcome = allocate(gateway, "40", min_quote="50")
    assert outcome.kind is OutcomeKind.SKIPPED_BELOW_MINIMUM_QUOTE
    assert gateway.placed == []
    assert gateway.calls == []


def test_below_minimum_base(gateway: FakeGateway) -> None:
    gateway.asks = {"BTCZAR": "2000000"}
    outcome = allocate(gateway, "1000", min_base="0.001")
    assert outcome.kind is OutcomeKind.SKIPPED_BELOW_MINIMUM_BASE
    assert outcome.quantity == Decimal("0.0005")
    assert gateway.placed == []


def test_insufficient_balance(gateway: FakeGateway) -> None:
    outcome = allocate(gateway, "1000", remaining="999")
    assert outcome.kind is OutcomeKind.SKIPPED_INSUFFICIENT_BALANCE


def test_not_configured(gateway: FakeGateway) -> None:
    assert allocate(gateway, None).kind is OutcomeKind.SKIPPED_NOT_CONFIGURED


def test_no_pair_info(gateway: FakeGateway) -> None:
    allocator = Allocator(gateway, IdempotencyGuard(gateway, include_hour=False))
    outcome = allocator.allocate(
        "XYZ", "XYZZAR", Decimal("100"), BalanceTracker.opening(Decimal("5000")), None, lambda _: None, NOW
    )
    assert outcome.kind is OutcomeKind.SKIPPED_NO_MARKET
    assert gateway.calls == []


def test_no_quote(gateway: FakeGateway) -> None:
    gateway.asks = {}
    assert allocate(gateway, "1000").kind is OutcomeKind.SKIPPED_NO_MARKET


def test_duplicate_checked_before_quote(gateway: FakeGateway) -> None:
    gateway.statuses["BTCZAR-2026-1-16"] = "FILLED"
    outcome = allocate(gateway, "1000")
    assert outcome.kind is OutcomeKind.SKIPPED_DUPLICATE_ORDER
    assert outcome.client_order_id == "BTCZAR-2026-1-16"
    assert gateway.placed == []


def test_placed_order_shape(gateway: FakeGateway) -> None:
    outcome = allocate(gateway, "1000")
    assert outcome.kind is OutcomeKind.PLACED
    assert outcome.order_id == "order-1"
    order = gateway.placed[0]
    assert order.pair == "BTCZAR"
    assert order.side == "BUY"
    assert order.quantity == Decimal("0.001")
    assert order.price == "1000000"
    assert order.client_order_id == "BTCZAR-2026-1-16"
    assert order.post_only_reprice is True
    assert order.time_in_force == "GTC"


def test_placement_failure_aborts_by_default(gateway: FakeGateway) -> None:
    gateway.fail_place_for = {"BTCZAR"}
    with pytest.raises(RunAborted) as exc:
        allocate(gateway, "1000")
    assert exc.value.stage == "place_order"


def test_placement_failure_can_continue(gateway: FakeGateway) -> None:
    gateway.fail_place_for = {"BTCZAR"}
    allocator = Allocator(gateway, IdempotencyGuard(gateway, include_hour=False), PlacementFailurePolicy.CONTINUE)
    quotes = {q.pair: q for q in gateway.get_market_summary()}
    outcome = allocator.allocate(
        "BTC", "BTCZAR", Decimal("1000"), BalanceTracker.opening(Decimal("5000")), pair("BTCZAR"), quotes.get, NOW
    )
    assert outcome.kind is OutcomeKind.FAILED_PLACEMENT
    assert "rejected BTCZAR" in outcome.detail
