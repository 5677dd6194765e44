from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from .allocation import Allocator, per_run_budget
from .balance import BalanceTracker
from .config import load_policy
from .errors import ConfigurationError, GatewayError, RunAborted
from .gateway import ExchangeGateway
from .idempotency import IdempotencyGuard
from .log import get_logger
from .types import DcaPolicy, MarketQuote, OutcomeKind, PairInfo, RunOutcome, RunReport

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DcaRunner:
    """Drives one DCA invocation end to end.

    Currencies are processed strictly one after another: the remaining fiat
    balance is read and then debited per currency, so running them
    concurrently would need a reservation step before fan-out.
    """

    def __init__(
        self,
        gateway: ExchangeGateway,
        policy_loader: Callable[[], DcaPolicy] = load_policy,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.policy_loader = policy_loader
        self.clock = clock

    def run(self, force: bool = False) -> RunReport:
        try:
            policy = self.policy_loader()
        except ConfigurationError as exc:
            logger.error("config_invalid", error=str(exc))
            raise

        now = self.clock().astimezone(timezone.utc)
        hours = sorted(policy.execution_hours)
        in_window = now.hour in policy.execution_hours
        logger.info("dca_hour_check", current=now.hour, configured=hours, match=in_window, forced=force)
        if not in_window and not force:
            logger.info("dca_not_executing", reason="current hour not in DCA_EXECUTION_HOURS")
            return RunReport(executed=False, hour=now.hour)

        available = self._fiat_balance(policy.fiat_currency)
        pairs = self._pair_index()
        quote_for = self._lazy_quotes()

        guard = IdempotencyGuard(self.gateway, policy.include_hour_in_order_id, policy.lookup_failure)
        allocator = Allocator(self.gateway, guard, policy.placement_failure)

        logger.info(
            "dca_started",
            executions_per_day=policy.executions_per_day,
            hours=hours,
            currencies=list(policy.currencies),
            available=str(available),
            fiat=policy.fiat_currency,
        )

        tracker = BalanceTracker.opening(available)
        outcomes: list[RunOutcome] = []
        for currency in policy.currencies:
            pair = policy.pair_for(currency)
            total = policy.budgets.get(currency)
            budget = per_run_budget(total, policy.executions_per_day) if total is not None else None
            if budget is not None:
                logger.info(
                    "dca_budget",
                    currency=currency,
                    total=str(total),
                    executions=policy.executions_per_day,
                    per_execution=str(budget),
                )

            outcome = allocator.allocate(currency, pair, budget, tracker, pairs.get(pair), quote_for, now)
            if outcome.kind is OutcomeKind.PLACED and outcome.budget is not None:
                tracker = tracker.debit(outcome.budget)
            outcomes.append(outcome)

        logger.info(
            "dca_completed",
            placed=sum(1 for o in outcomes if o.placed),
            spent=str(tracker.spent),
            remaining=str(tracker.remaining),
        )
        return RunReport(
            executed=True,
            hour=now.hour,
            outcomes=tuple(outcomes),
            available_balance=available,
            remaining_balance=tracker.remaining,
            forced=force,
        )

    def _fiat_balance(self, fiat_currency: str) -> Decimal:
        try:
            balances = self.gateway.get_balances()
        except GatewayError as exc:
            logger.error("balance_fetch_failed", error=str(exc))
            raise RunAborted("balance", str(exc)) from exc

        for balance in balances:
            if balance.currency == fiat_currency:
                return balance.available
        logger.error("balance_missing", currency=fiat_currency)
        raise RunAborted("balance", f"No {fiat_currency} balance found")

    def _pair_index(self) -> dict[str, PairInfo]:
        try:
            pairs = self.gateway.get_currency_pairs()
        except GatewayError as exc:
            logger.error("pairs_fetch_failed", error=str(exc))
            raise RunAborted("pairs", str(exc)) from exc
        return {p.symbol: p for p in pairs}

    def _lazy_quotes(self) -> Callable[[str], MarketQuote | None]:
        cache: dict[str, MarketQuote] = {}
        loaded = False

        def quote_for(pair: str) -> MarketQuote | None:
            nonlocal loaded
            if not loaded:
                try:
                    summaries = self.gateway.get_market_summary()
                except GatewayError as exc:
                    logger.error("market_summary_failed", error=str(exc))
                    raise RunAborted("market_summary", str(exc)) from exc
                for q in summaries:
                    if q.ask_price.is_finite() and q.ask_price > 0:
                        cache[q.pair] = q
                    else:
                        logger.warning("ask_price_unusable", pair=q.pair, ask=q.ask_price_text)
                loaded = True
            return cache.get(pair)

        return quote_for
