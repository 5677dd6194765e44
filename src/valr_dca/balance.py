from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .errors import PolicyViolation


@dataclass(frozen=True)
class BalanceTracker:
    """Fiat left to spend in one run.

    Immutable: ``debit`` returns the next tracker, so the runner threads it
    through the currency loop as an accumulator. The sum of debits can never
    exceed the starting balance.
    """

    start: Decimal
    remaining: Decimal

    @classmethod
    def opening(cls, available: Decimal) -> "BalanceTracker":
        if available < 0:
            raise PolicyViolation(f"Negative opening balance {available}")
        return cls(start=available, remaining=available)

    def can_afford(self, amount: Decimal) -> bool:
        return self.remaining >= amount

    def debit(self, amount: Decimal) -> "BalanceTracker":
        if amount < 0:
            raise PolicyViolation(f"Negative debit {amount}")
        remaining = self.remaining - amount
        if remaining < 0:
            raise PolicyViolation(f"Debit {amount} would overdraw remaining balance {self.remaining}")
        return BalanceTracker(start=self.start, remaining=remaining)

    @property
    def spent(self) -> Decimal:
        return self.start - self.remaining
