from __future__ import annotations

from datetime import datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Callable

from .balance import BalanceTracker
from .errors import GatewayError, PolicyViolation, RunAborted
from .gateway import ExchangeGateway
from .idempotency import IdempotencyGuard
from .log import get_logger
from .types import LimitOrder, MarketQuote, OutcomeKind, PairInfo, PlacementFailurePolicy, RunOutcome

logger = get_logger(__name__)

WHOLE_UNIT = Decimal("1")


def per_run_budget(total_budget: Decimal, executions_per_day: int) -> Decimal:
    """Share of the daily budget spent per execution, in whole fiat units.

    Rounds half away from zero: 100/3 -> 33, 10/4 -> 3, 50/4 -> 13.
    """
    if executions_per_day < 1:
        raise PolicyViolation(f"executions_per_day must be >= 1, got {executions_per_day}")
    return (Decimal(total_budget) / executions_per_day).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def precheck(budget: Decimal, remaining: BalanceTracker, pair_info: PairInfo) -> OutcomeKind | None:
    if not remaining.can_afford(budget):
        return OutcomeKind.SKIPPED_INSUFFICIENT_BALANCE
    if budget < pair_info.min_quote_amount:
        return OutcomeKind.SKIPPED_BELOW_MINIMUM_QUOTE
    return None


def size_order(budget: Decimal, ask_price: Decimal, base_decimal_places: int | None = None) -> Decimal:
    if ask_price <= 0:
        raise PolicyViolation(f"Non-positive ask price {ask_price}")
    quantity = budget / ask_price
    if base_decimal_places is not None:
        quantity = quantity.quantize(Decimal(1).scaleb(-base_decimal_places), rounding=ROUND_DOWN)
    if quantity < 0:
        raise PolicyViolation(f"Negative order quantity {quantity}")
    return quantity


def meets_min_base(quantity: Decimal, min_base_amount: Decimal) -> bool:
    return quantity >= min_base_amount


class Allocator:
    def __init__(
        self,
        gateway: ExchangeGateway,
        guard: IdempotencyGuard,
        placement_failure: PlacementFailurePolicy = PlacementFailurePolicy.ABORT,
    ) -> None:
        self.gateway = gateway
        self.guard = guard
        self.placement_failure = placement_failure

    def allocate(
        self,
        currency: str,
        pair: str,
        budget: Decimal | None,
        remaining: BalanceTracker,
        pair_info: PairInfo | None,
        quote_for: Callable[[str], MarketQuote | None],
        when: datetime,
    ) -> RunOutcome:
        if pair_info is None:
            logger.info("skip_no_market", currency=currency, pair=pair, reason="order book does not exist")
            return RunOutcome(currency, pair, OutcomeKind.SKIPPED_NO_MARKET, detail=f"order book {pair} does not exist")

        if budget is None:
            logger.error("skip_not_configured", currency=currency, pair=pair)
            return RunOutcome(currency, pair, OutcomeKind.SKIPPED_NOT_CONFIGURED, detail="no DCA amount configured")

        blocked = precheck(budget, remaining, pair_info)
        if blocked is OutcomeKind.SKIPPED_INSUFFICIENT_BALANCE:
            detail = f"insufficient balance({remaining.remaining}) to buy amount({budget})"
            logger.info("skip_insufficient_balance", currency=currency, remaining=str(remaining.remaining), budget=str(budget))
            return RunOutcome(currency, pair, blocked, budget=budget, detail=detail)
        if blocked is OutcomeKind.SKIPPED_BELOW_MINIMUM_QUOTE:
            detail = f"amount({budget}) below minimum quote amount({pair_info.min_quote_amount})"
            logger.info("skip_below_min_quote", currency=currency, budget=str(budget), min_quote=str(pair_info.min_quote_amount))
            return RunOutcome(currency, pair, blocked, budget=budget, detail=detail)

        customer_order_id = self.guard.order_id_for(pair, when)
        if self.guard.already_placed(pair, when):
            logger.info("skip_duplicate_order", currency=currency, client_order_id=customer_order_id)
            return RunOutcome(
                currency,
                pair,
                OutcomeKind.SKIPPED_DUPLICATE_ORDER,
                budget=budget,
                client_order_id=customer_order_id,
                detail=f"customerOrderId({customer_order_id}) already exists",
            )

        quote = quote_for(pair)
        if quote is None:
            logger.info("skip_no_market", currency=currency, pair=pair, reason="no market summary")
            return RunOutcome(currency, pair, OutcomeKind.SKIPPED_NO_MARKET, budget=budget, detail=f"no market summary for {pair}")

        quantity = size_order(budget, quote.ask_price, pair_info.base_decimal_places)
        if not meets_min_base(quantity, pair_info.min_base_amount):
            logger.info("skip_below_min_base", currency=currency, quantity=str(quantity), min_base=str(pair_info.min_base_amount))
            return RunOutcome(
                currency,
                pair,
                OutcomeKind.SKIPPED_BELOW_MINIMUM_BASE,
                budget=budget,
                quantity=quantity,
                price=quote.ask_price_text,
                detail=f"quantity({quantity}) below minimum base amount({pair_info.min_base_amount})",
            )

        order = LimitOrder(pair=pair, quantity=quantity, price=quote.ask_price_text, client_order_id=customer_order_id)
        try:
            order_id = self.gateway.place_limit_buy_order(order)
        except GatewayError as exc:
            if self.placement_failure is PlacementFailurePolicy.ABORT:
                logger.error("order_failed", currency=currency, client_order_id=customer_order_id, error=str(exc), policy="abort")
                raise RunAborted("place_order", f"{pair}: {exc}") from exc
            logger.error("order_failed", currency=currency, client_order_id=customer_order_id, error=str(exc), policy="continue")
            return RunOutcome(
                currency,
                pair,
                OutcomeKind.FAILED_PLACEMENT,
                budget=budget,
                quantity=quantity,
                price=quote.ask_price_text,
                client_order_id=customer_order_id,
                detail=str(exc),
            )

        logger.info("order_placed", currency=currency, order_id=order_id, quantity=str(quantity), price=quote.ask_price_text)
        return RunOutcome(
            currency,
            pair,
            OutcomeKind.PLACED,
            budget=budget,
            order_id=order_id,
            quantity=quantity,
            price=quote.ask_price_text,
            client_order_id=customer_order_id,
        )
