from __future__ import annotations

from datetime import datetime, timezone

from .errors import GatewayError
from .gateway import ExchangeGateway
from .log import get_logger
from .types import LookupFailurePolicy

logger = get_logger(__name__)

RETRYABLE_STATUSES = frozenset({"FAILED", "CANCELLED"})
SATISFIED_STATUSES = frozenset({"FILLED"})


def client_order_id(pair: str, when: datetime, include_hour: bool) -> str:
    """Deterministic customer order id for one pair in one scheduling window.

    Uses the UTC calendar date, without zero padding, e.g. ``BTCZAR-2026-1-6``
    or ``BTCZAR-2026-1-6-15`` when every execution hour is its own window.
    """
    utc = when.astimezone(timezone.utc) if when.tzinfo else when
    base = f"{pair}-{utc.year}-{utc.month}-{utc.day}"
    return f"{base}-{utc.hour}" if include_hour else base


def status_blocks_placement(status: str) -> bool:
    status = status.strip().upper()
    if status in RETRYABLE_STATUSES:
        return False
    if status in SATISFIED_STATUSES:
        return True
    logger.warning("order_status_unaccounted", status=status, assumed="already_placed")
    return True


class IdempotencyGuard:
    def __init__(
        self,
        gateway: ExchangeGateway,
        include_hour: bool,
        lookup_failure: LookupFailurePolicy = LookupFailurePolicy.ASSUME_NOT_PLACED,
    ) -> None:
        self.gateway = gateway
        self.include_hour = include_hour
        self.lookup_failure = lookup_failure

    def order_id_for(self, pair: str, when: datetime) -> str:
        return client_order_id(pair, when, self.include_hour)

    def already_placed(self, pair: str, when: datetime) -> bool:
        customer_order_id = self.order_id_for(pair, when)
        try:
            order = self.gateway.get_order_status_by_client_id(pair, customer_order_id)
        except GatewayError as exc:
            # Not-found lands here too. The exchange refuses a reused customer
            # order id, which backs up the fail-open default.
            placed = self.lookup_failure is LookupFailurePolicy.ASSUME_PLACED
            logger.info(
                "order_lookup_failed",
                client_order_id=customer_order_id,
                error=str(exc),
                policy=self.lookup_failure.value,
                assume_placed=placed,
            )
            return placed

        return status_blocks_placement(order.status)
