"""Rebalance planner: holdings plus risk level to an ordered trade plan.

Algorithm:
1. Validate tolerance and trade unit, normalise holdings (absent = 0,
   negative = 0, NaN/infinity rejected)
2. Empty portfolio -> empty plan
3. Look up the target allocation for the (clamped) risk level
4. For each class, keep it only if its drift is non-zero and at least the
   tolerance
5. Round target values and deltas to the trade unit (half-to-even)
6. Add the residual to the largest action so deltas sum to exactly zero
7. Sort by descending trade size, ties in asset-class order

The residual in step 6 covers rounding noise and also the net drift of classes
that stayed inside tolerance, which keeps every plan self-funding.
"""

from dataclasses import replace
from decimal import Context, Decimal, localcontext
from typing import Dict, List, Mapping, Union

from tierbalance.portfolio.allocation_curve import (
    DEFAULT_CURVE,
    AllocationCurve,
    clamp_risk_level,
)
from tierbalance.portfolio.base import (
    AssetClass,
    HoldingsSnapshot,
    RebalanceAction,
    RebalancePlan,
)
from tierbalance.utils.exceptions import (
    InvalidToleranceError,
    InvalidTradeUnitError,
    NonFiniteHoldingError,
    RebalanceError,
    UnknownAssetClassError,
)
from tierbalance.utils.precision import (
    DEFAULT_TRADE_UNIT,
    Number,
    decimal_context,
    exact_sum,
    quantize_to_unit,
    to_decimal,
)

DEFAULT_TOLERANCE_PCT = Decimal("1.0")


def coerce_asset_class(key: Union[AssetClass, str]) -> AssetClass:
    """Resolve an enum member, its value ("LargeCapAlt") or its name ("LARGE_CAP_ALT").

    Raises:
        UnknownAssetClassError: If key names no asset class
    """
    if isinstance(key, AssetClass):
        return key
    if isinstance(key, str):
        try:
            return AssetClass(key)
        except ValueError:
            pass
        try:
            return AssetClass[key]
        except KeyError:
            pass
    raise UnknownAssetClassError(
        f"Unknown asset class {key!r}, expected one of "
        f"{', '.join(c.value for c in AssetClass)}"
    )


def normalize_holdings(holdings: HoldingsSnapshot) -> Dict[AssetClass, Decimal]:
    """Turn a caller snapshot into {AssetClass: Decimal} covering all five classes.

    The input mapping is only read. Absent classes are zero, negative values
    clamp to zero, and repeated keys for one class (enum member and its string
    value) are summed.

    Raises:
        UnknownAssetClassError: If a key names no asset class
        NonFiniteHoldingError: If a value is NaN or infinite
        RebalanceError: If a value is not a number, or values span more
            digits than supported
    """
    parts: Dict[AssetClass, List[Decimal]] = {asset_class: [] for asset_class in AssetClass}

    for key, raw in holdings.items():
        asset_class = coerce_asset_class(key)
        try:
            value = to_decimal(raw)
        except TypeError as e:
            raise RebalanceError(
                f"Holding value for {asset_class.value} must be a number: {e}"
            ) from e
        if not value.is_finite():
            raise NonFiniteHoldingError(
                f"Holding value for {asset_class.value} must be finite, got {raw!r}"
            )
        if value > 0:
            parts[asset_class].append(value)

    try:
        return {asset_class: exact_sum(amounts) for asset_class, amounts in parts.items()}
    except ValueError as e:
        raise RebalanceError(f"Holdings cannot be planned exactly: {e}") from e


def _validate_tolerance(tolerance_pct: Number) -> Decimal:
    try:
        tolerance = to_decimal(tolerance_pct)
    except TypeError as e:
        raise InvalidToleranceError(f"tolerance_pct must be a number: {e}") from e
    if not tolerance.is_finite():
        raise InvalidToleranceError(f"tolerance_pct must be finite, got {tolerance_pct!r}")
    if tolerance < 0:
        raise InvalidToleranceError(f"tolerance_pct must be >= 0, got {tolerance_pct}")
    return tolerance


def validate_trade_unit(unit: Number) -> Decimal:
    """Parse the smallest tradable unit.

    Raises:
        InvalidTradeUnitError: If unit is not a positive finite amount
    """
    try:
        value = to_decimal(unit)
    except TypeError as e:
        raise InvalidTradeUnitError(f"unit must be a number: {e}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidTradeUnitError(f"unit must be a positive finite amount, got {unit!r}")
    return value


def _planning_context(values: Dict[AssetClass, Decimal], unit: Decimal | None = None) -> Context:
    """Decimal context for one call, independent of the caller's thread-local context.

    Raises:
        RebalanceError: If holdings and unit span more digits than supported
    """
    try:
        return decimal_context(values.values(), unit)
    except ValueError as e:
        raise RebalanceError(f"Holdings cannot be planned exactly: {e}") from e


def _settle_residual(actions: List[RebalanceAction]) -> List[RebalanceAction]:
    """Push the net delta onto the largest action so the plan sums to zero."""
    if not actions:
        return actions

    residual = -sum((a.delta_value for a in actions), Decimal("0"))
    if residual == 0:
        return actions

    largest = min(
        range(len(actions)),
        key=lambda i: (-abs(actions[i].delta_value), actions[i].asset_class.rank),
    )
    settled = list(actions)
    settled[largest] = replace(
        actions[largest], delta_value=actions[largest].delta_value + residual
    )
    return settled


class RebalancePlanner:
    """Turns a risk level and holdings snapshot into a RebalancePlan.

    Stateless apart from the immutable allocation curve, so one instance can be
    shared by any number of threads.

    Example:
        >>> planner = RebalancePlanner()
        >>> result = planner.plan(1, {"Stablecoin": 900, "Bitcoin": 100})
        >>> [(a.asset_class.value, str(a.delta_value)) for a in result.actions]
        [('Stablecoin', '-300.00'), ('Bitcoin', '200.00'), ('LargeCapAlt', '70.00'),
         ('MidCapAlt', '20.00'), ('SmallCapAlt', '10.00')]
    """

    def __init__(self, curve: AllocationCurve | None = None):
        """Initialize planner.

        Args:
            curve: Allocation curve to plan against (defaults to the built-in table)
        """
        self.curve = curve or DEFAULT_CURVE

    def plan(
        self,
        level: Union[int, float],
        holdings: HoldingsSnapshot,
        tolerance_pct: Number = DEFAULT_TOLERANCE_PCT,
        unit: Number = DEFAULT_TRADE_UNIT,
    ) -> RebalancePlan:
        """Compute the rebalance plan.

        Args:
            level: Risk level; clamped into 1..10
            holdings: {AssetClass or name: market value}; missing classes are 0
            tolerance_pct: Minimum drift in percentage points to act on a class
            unit: Smallest tradable amount deltas are rounded to

        Returns:
            RebalancePlan whose deltas sum to exactly zero. Empty when the
            portfolio is empty or every class is within tolerance.

        Raises:
            InvalidToleranceError: If tolerance_pct is negative or not finite
            InvalidTradeUnitError: If unit is not a positive finite amount
            NonFiniteHoldingError: If a holding is NaN or infinite
            UnknownAssetClassError: If holdings name an unknown asset class
            RebalanceError: If holdings and unit span more digits than supported
        """
        tolerance = _validate_tolerance(tolerance_pct)
        trade_unit = validate_trade_unit(unit)
        risk_level = clamp_risk_level(level)
        values = normalize_holdings(holdings)

        with localcontext(_planning_context(values, trade_unit)):
            total = sum(values.values(), Decimal("0"))
            if total == 0:
                return RebalancePlan(
                    risk_level=risk_level,
                    total_value=total,
                    tolerance_pct=tolerance,
                )

            target = self.curve.target(risk_level)
            actions: List[RebalanceAction] = []

            for asset_class in AssetClass:
                value = values[asset_class]
                target_pct = target[asset_class]
                current_pct = value * 100 / total
                drift = current_pct - target_pct

                if drift == 0 or abs(drift) < tolerance:
                    continue

                target_value = total * target_pct / 100
                actions.append(
                    RebalanceAction(
                        asset_class=asset_class,
                        current_value=value,
                        current_pct=current_pct,
                        target_pct=target_pct,
                        target_value=quantize_to_unit(target_value, trade_unit),
                        delta_value=quantize_to_unit(target_value - value, trade_unit),
                    )
                )

            actions = _settle_residual(actions)
            actions.sort(key=lambda a: (-abs(a.delta_value), a.asset_class.rank))

        return RebalancePlan(
            risk_level=risk_level,
            total_value=total,
            tolerance_pct=tolerance,
            actions=tuple(actions),
        )

    def drift(
        self,
        level: Union[int, float],
        holdings: HoldingsSnapshot,
    ) -> Dict[AssetClass, Decimal]:
        """Per-class drift (current minus target) in percentage points.

        Returns an empty dict for an empty portfolio.
        """
        values = normalize_holdings(holdings)

        with localcontext(_planning_context(values)):
            total = sum(values.values(), Decimal("0"))
            if total == 0:
                return {}

            target = self.curve.target(level)
            return {
                asset_class: values[asset_class] * 100 / total - target[asset_class]
                for asset_class in AssetClass
            }


_DEFAULT_PLANNER = RebalancePlanner()


def plan(
    level: Union[int, float],
    holdings: HoldingsSnapshot,
    tolerance_pct: Number = DEFAULT_TOLERANCE_PCT,
    unit: Number = DEFAULT_TRADE_UNIT,
) -> RebalancePlan:
    """Compute a rebalance plan against the default allocation curve.

    See RebalancePlanner.plan for arguments and errors.
    """
    return _DEFAULT_PLANNER.plan(level, holdings, tolerance_pct, unit)


def calculate_drift(
    level: Union[int, float],
    holdings: HoldingsSnapshot,
) -> Dict[AssetClass, Decimal]:
    """Per-class drift in percentage points against the default curve."""
    return _DEFAULT_PLANNER.drift(level, holdings)


def needs_rebalance(drift: Mapping[AssetClass, Decimal], threshold_pct: Number) -> bool:
    """Check whether any class drifted at least ``abs(threshold_pct)`` points.

    Zero drift never triggers, even for a zero threshold.

    Raises:
        InvalidToleranceError: If threshold_pct is not a finite number
    """
    try:
        limit = abs(to_decimal(threshold_pct))
    except TypeError as e:
        raise InvalidToleranceError(f"threshold_pct must be a number: {e}") from e
    if not limit.is_finite():
        raise InvalidToleranceError(f"threshold_pct must be finite, got {threshold_pct!r}")

    return any(d != 0 and abs(d) >= limit for d in drift.values())
