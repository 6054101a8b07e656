"""Custom exceptions for TierBalance.

This module defines the exception hierarchy for the application.

Degenerate inputs (an empty portfolio, an out-of-range risk level, a negative
holding) are resolved by the engine and never raise. Everything below signals
either a caller programming error or a broken authored allocation table.
"""


class TierBalanceError(Exception):
    """Base exception for all TierBalance errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(TierBalanceError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Risk level outside 1..10 in the config file
        - Unsupported rebalance interval
        - Non-numeric environment override
    """

    pass


class PortfolioError(TierBalanceError):
    """Base exception for portfolio layer errors.

    Parent class for all allocation and rebalancing exceptions.
    """

    pass


class AllocationError(PortfolioError):
    """Raised when a target allocation cannot be produced.

    Examples:
        - Risk level is NaN or not a number
        - Allocation table failed validation
    """

    pass


class AllocationTableError(AllocationError):
    """Raised when the authored allocation table violates an invariant.

    Examples:
        - A row does not sum to 100
        - Stablecoin share grows as risk grows
        - A class jumps by more than the allowed step between adjacent levels
    """

    pass


class InvalidRiskLevelError(AllocationError):
    """Raised when a risk level cannot be clamped (NaN or non-numeric)."""

    pass


class RebalanceError(PortfolioError):
    """Raised when a rebalance plan call is rejected.

    Examples:
        - Negative tolerance
        - Holding value is NaN or infinite
    """

    pass


class InvalidToleranceError(RebalanceError):
    """Raised when the drift tolerance is negative or not finite."""

    pass


class InvalidTradeUnitError(RebalanceError):
    """Raised when the smallest tradable unit is not a positive finite amount."""

    pass


class NonFiniteHoldingError(RebalanceError):
    """Raised when a holding value is NaN or infinite."""

    pass


class UnknownAssetClassError(RebalanceError):
    """Raised when a holdings snapshot names an asset class that does not exist."""

    pass
