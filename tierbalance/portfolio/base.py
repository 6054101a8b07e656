"""Core types for risk-tiered portfolio rebalancing.

This module defines the data structures shared by the allocation curve and the
rebalance planner.

Responsibilities:
- Asset classes: the closed set of five portfolio buckets
- Allocation targets: integer percentages per class summing to 100
- Rebalance actions and plans: the signed value deltas that move holdings
  toward target
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Mapping, Tuple, Union

from tierbalance.utils.precision import exact_sum


class AssetClass(Enum):
    """Portfolio buckets, from safest to most speculative.

    Declaration order is the canonical order: tables, reports and tie-breaks
    all follow it.
    """

    STABLECOIN = "Stablecoin"
    BITCOIN = "Bitcoin"
    LARGE_CAP_ALT = "LargeCapAlt"
    MID_CAP_ALT = "MidCapAlt"
    SMALL_CAP_ALT = "SmallCapAlt"

    @property
    def rank(self) -> int:
        """Position in declaration order (0 = Stablecoin)."""
        return _CLASS_RANK[self]


_CLASS_RANK = {cls: i for i, cls in enumerate(AssetClass)}


class TradeSide(Enum):
    """Direction of a rebalance action."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"  # drifted, but the residual left nothing to trade


# {AssetClass: percent}, integer percentages summing to 100
AllocationTarget = Dict[AssetClass, int]

# {AssetClass or its string value: market value in the reference currency}
HoldingsSnapshot = Mapping[Union[AssetClass, str], Union[int, float, str, Decimal]]


@dataclass(frozen=True)
class RebalanceAction:
    """One asset class that drifted beyond tolerance.

    Attributes:
        asset_class: Bucket being adjusted
        current_value: Current market value (negative inputs already clamped to 0)
        current_pct: Current share of the portfolio, in percent
        target_pct: Target share for the risk level, in percent
        target_value: Target market value (target_pct of the total), rounded to
            the trade unit
        delta_value: Signed adjustment; positive = buy, negative = sell

    The action that absorbs the plan residual also carries the net drift of
    classes left inside tolerance, so for it ``post_trade_value`` differs from
    ``target_value``. For every other action they agree up to rounding.
    """

    asset_class: AssetClass
    current_value: Decimal
    current_pct: Decimal
    target_pct: int
    target_value: Decimal
    delta_value: Decimal

    @property
    def side(self) -> TradeSide:
        if self.delta_value > 0:
            return TradeSide.BUY
        if self.delta_value < 0:
            return TradeSide.SELL
        return TradeSide.HOLD

    @property
    def post_trade_value(self) -> Decimal:
        """Value of the class once the delta is executed."""
        return exact_sum((self.current_value, self.delta_value))

    @property
    def amount(self) -> Decimal:
        """Unsigned trade size."""
        return abs(self.delta_value)

    @property
    def drift_pct(self) -> Decimal:
        """Current minus target, in percentage points (positive = overweight)."""
        return self.current_pct - self.target_pct


@dataclass(frozen=True)
class RebalancePlan:
    """Ordered rebalance actions for one evaluation.

    Actions are sorted by descending trade size so a caller executing them
    sequentially addresses the most material drift first.

    Attributes:
        risk_level: Clamped risk level the target was taken from
        total_value: Total portfolio value
        tolerance_pct: Drift tolerance used to filter classes
        actions: Ordered actions; deltas sum to exactly zero
    """

    risk_level: int
    total_value: Decimal
    tolerance_pct: Decimal
    actions: Tuple[RebalanceAction, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.actions

    @property
    def buys(self) -> Tuple[RebalanceAction, ...]:
        return tuple(a for a in self.actions if a.side == TradeSide.BUY)

    @property
    def sells(self) -> Tuple[RebalanceAction, ...]:
        return tuple(a for a in self.actions if a.side == TradeSide.SELL)

    @property
    def net_delta(self) -> Decimal:
        """Sum of all deltas. Always zero for a plan built by the planner."""
        return exact_sum(a.delta_value for a in self.actions)

    @property
    def turnover(self) -> Decimal:
        """Total value bought (equal to total value sold)."""
        return exact_sum(a.delta_value for a in self.buys)

    def action_for(self, asset_class: AssetClass) -> RebalanceAction | None:
        """Return the action for an asset class, or None if it is within tolerance."""
        for action in self.actions:
            if action.asset_class == asset_class:
                return action
        return None


@dataclass(frozen=True)
class TradeLeg:
    """One per-pair order derived from a rebalance action.

    Attributes:
        pair: Normalized trading pair ("ETH/USDT") or a class basket
            ("MidCapAlt_BASKET") when no concrete pair is known
        asset_class: Bucket the leg belongs to
        side: BUY or SELL
        amount: Unsigned order value in the reference currency
    """

    pair: str
    asset_class: AssetClass
    side: TradeSide
    amount: Decimal

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the action's sign (positive = buy)."""
        return self.amount if self.side == TradeSide.BUY else -self.amount
