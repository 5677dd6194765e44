from __future__ import annotations


class DcaError(Exception):
    """Base class for everything this package raises on purpose."""


class ConfigurationError(DcaError, ValueError):
    """Policy could not be resolved from the environment. No run is attempted."""


class MissingCredentials(ConfigurationError):
    pass


class InvalidCredentialShape(ConfigurationError):
    pass


class CurrencyBudgetMismatch(ConfigurationError):
    def __init__(self, n_currencies: int, n_budgets: int) -> None:
        super().__init__(
            f"currencies({n_currencies}) and amounts({n_budgets}) length dont match. "
            "Please check your DCA_CURRENCIES and DCA_AMOUNTS values"
        )
        self.n_currencies = n_currencies
        self.n_budgets = n_budgets


class InvalidExecutionHour(ConfigurationError):
    pass


class InvalidBudget(ConfigurationError):
    pass


class DuplicateCurrency(ConfigurationError):
    pass


class GatewayError(DcaError, RuntimeError):
    """Transport, auth or rate-limit failure talking to the exchange."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OrderNotFound(GatewayError):
    pass


class RunAborted(DcaError, RuntimeError):
    """A run stopped at `stage`. Orders placed before the failure stay placed."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class PolicyViolation(DcaError, AssertionError):
    """Internal invariant broken (negative balance or quantity). Not recoverable."""
