"""Risk level to target allocation curve.

The curve is a hand-authored table of ten rows, one per risk level. It is
validated once when this module is imported; a table that breaks any invariant
raises AllocationTableError and the module refuses to load.

Invariants:
1. Exactly ten rows keyed 1..10, each covering all five asset classes
2. Integer percentages in [0, 100] summing to exactly 100
3. Stablecoin and Bitcoin shares never grow as risk grows
4. SmallCapAlt share never shrinks as risk grows
5. LargeCapAlt and MidCapAlt rise then fall (never rise again after falling)
6. No class moves more than MAX_LEVEL_STEP points between adjacent levels
"""

import math
import numbers
from decimal import ROUND_HALF_EVEN, Decimal
from types import MappingProxyType
from typing import Dict, Mapping, Union

from tierbalance.portfolio.base import AllocationTarget, AssetClass
from tierbalance.utils.exceptions import AllocationTableError, InvalidRiskLevelError

MIN_RISK_LEVEL = 1
MAX_RISK_LEVEL = 10
MAX_LEVEL_STEP = 10

S = AssetClass.STABLECOIN
B = AssetClass.BITCOIN
L = AssetClass.LARGE_CAP_ALT
M = AssetClass.MID_CAP_ALT
X = AssetClass.SMALL_CAP_ALT

RISK_ALLOCATIONS: Dict[int, Dict[AssetClass, int]] = {
    1: {S: 60, B: 30, L: 7, M: 2, X: 1},
    2: {S: 50, B: 28, L: 13, M: 6, X: 3},
    3: {S: 40, B: 26, L: 18, M: 10, X: 6},
    4: {S: 32, B: 24, L: 21, M: 14, X: 9},
    5: {S: 25, B: 22, L: 23, M: 17, X: 13},
    6: {S: 18, B: 20, L: 24, M: 20, X: 18},
    7: {S: 12, B: 18, L: 24, M: 23, X: 23},
    8: {S: 7, B: 15, L: 23, M: 25, X: 30},
    9: {S: 3, B: 12, L: 21, M: 26, X: 38},
    10: {S: 0, B: 10, L: 18, M: 26, X: 46},
}

del S, B, L, M, X

RISK_LABELS: Mapping[int, str] = MappingProxyType(
    {
        1: "Ultra Safe",
        2: "Very Conservative",
        3: "Conservative",
        4: "Moderate-Safe",
        5: "Balanced",
        6: "Growth",
        7: "Aggressive",
        8: "Very Aggressive",
        9: "High Risk",
        10: "YOLO",
    }
)

NON_INCREASING = (AssetClass.STABLECOIN, AssetClass.BITCOIN)
NON_DECREASING = (AssetClass.SMALL_CAP_ALT,)
GLIDE_PATH = (AssetClass.LARGE_CAP_ALT, AssetClass.MID_CAP_ALT)


def clamp_risk_level(level: Union[int, float, Decimal]) -> int:
    """Clamp any numeric risk level into 1..10.

    Any integral type is accepted (``int``, ``numpy.int64``). Reals and
    Decimals are rounded half-to-even first, so a slider reporting ``6.6``
    selects level 7. Infinities clamp to the boundaries.

    Args:
        level: Requested risk level

    Returns:
        Integer risk level in [1, 10]

    Raises:
        InvalidRiskLevelError: If level is NaN or not a number
    """
    if isinstance(level, bool):
        raise InvalidRiskLevelError(f"Risk level must be a number, got {level!r}")

    if isinstance(level, numbers.Integral):
        level = int(level)
    elif isinstance(level, Decimal):
        if level.is_nan():
            raise InvalidRiskLevelError("Risk level must not be NaN")
        if level >= MAX_RISK_LEVEL:
            return MAX_RISK_LEVEL
        if level <= MIN_RISK_LEVEL:
            return MIN_RISK_LEVEL
        level = int(level.to_integral_value(rounding=ROUND_HALF_EVEN))
    elif isinstance(level, numbers.Real):
        level = float(level)
        if math.isnan(level):
            raise InvalidRiskLevelError("Risk level must not be NaN")
        if math.isinf(level):
            return MAX_RISK_LEVEL if level > 0 else MIN_RISK_LEVEL
        level = int(round(level))
    else:
        raise InvalidRiskLevelError(f"Risk level must be a number, got {level!r}")

    return max(MIN_RISK_LEVEL, min(MAX_RISK_LEVEL, level))


class AllocationCurve:
    """Validated, immutable risk level to allocation table.

    Example:
        >>> curve = AllocationCurve(RISK_ALLOCATIONS)
        >>> curve.target(1)[AssetClass.STABLECOIN]
        60
        >>> curve.target(99) == curve.target(10)
        True
    """

    def __init__(self, rows: Mapping[int, Mapping[AssetClass, int]]):
        """Copy and validate the table.

        Args:
            rows: {risk_level: {AssetClass: percent}}

        Raises:
            AllocationTableError: If any invariant is violated
        """
        self._rows = MappingProxyType(
            {level: MappingProxyType(dict(row)) for level, row in rows.items()}
        )
        self._validate()

    def _validate(self) -> None:
        expected_levels = list(range(MIN_RISK_LEVEL, MAX_RISK_LEVEL + 1))
        if sorted(self._rows) != expected_levels:
            raise AllocationTableError(
                f"Allocation table must have rows for levels 1..10, got {sorted(self._rows)}"
            )

        for level in expected_levels:
            row = self._rows[level]
            if set(row) != set(AssetClass):
                missing = [c.value for c in AssetClass if c not in row]
                raise AllocationTableError(
                    f"Level {level} must cover every asset class, missing {missing}"
                )
            for asset_class, pct in row.items():
                if isinstance(pct, bool) or not isinstance(pct, int):
                    raise AllocationTableError(
                        f"Level {level} {asset_class.value} must be an integer percent, got {pct!r}"
                    )
                if not 0 <= pct <= 100:
                    raise AllocationTableError(
                        f"Level {level} {asset_class.value} must be in [0, 100], got {pct}"
                    )
            total = sum(row.values())
            if total != 100:
                raise AllocationTableError(f"Level {level} sums to {total}, expected 100")

        for asset_class in AssetClass:
            column = [self._rows[level][asset_class] for level in expected_levels]
            self._validate_column(asset_class, column)

    def _validate_column(self, asset_class: AssetClass, column: list) -> None:
        falling = False
        for i in range(1, len(column)):
            level = i + MIN_RISK_LEVEL
            step = column[i] - column[i - 1]

            if abs(step) > MAX_LEVEL_STEP:
                raise AllocationTableError(
                    f"{asset_class.value} jumps {step:+d} points from level {level - 1} "
                    f"to {level} (max {MAX_LEVEL_STEP})"
                )
            if asset_class in NON_INCREASING and step > 0:
                raise AllocationTableError(
                    f"{asset_class.value} must not grow with risk "
                    f"(level {level - 1} -> {level}: {step:+d})"
                )
            if asset_class in NON_DECREASING and step < 0:
                raise AllocationTableError(
                    f"{asset_class.value} must not shrink with risk "
                    f"(level {level - 1} -> {level}: {step:+d})"
                )
            if asset_class in GLIDE_PATH:
                if step < 0:
                    falling = True
                elif step > 0 and falling:
                    raise AllocationTableError(
                        f"{asset_class.value} rises again at level {level} after falling"
                    )

    def target(self, level: Union[int, float]) -> AllocationTarget:
        """Target allocation for a risk level (clamped into 1..10).

        Returns a fresh dict on every call; mutating it never affects the table.
        """
        return dict(self._rows[clamp_risk_level(level)])

    def rows(self) -> Dict[int, AllocationTarget]:
        """All ten rows, as fresh dicts keyed by level."""
        return {level: dict(row) for level, row in self._rows.items()}


DEFAULT_CURVE = AllocationCurve(RISK_ALLOCATIONS)


def target_allocation(level: Union[int, float]) -> AllocationTarget:
    """Target allocation from the default curve.

    Args:
        level: Risk level; out-of-range values are clamped to 1..10

    Returns:
        {AssetClass: percent} summing to exactly 100

    Example:
        >>> target_allocation(0) == target_allocation(1)
        True
    """
    return DEFAULT_CURVE.target(level)


def risk_label(level: Union[int, float]) -> str:
    """Human-readable name for a risk level (clamped into 1..10)."""
    return RISK_LABELS[clamp_risk_level(level)]
