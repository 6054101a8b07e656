"""Portfolio Management Layer.

This layer maps a user's risk level to a target asset-class allocation and
computes the trades that move current holdings toward it.

Components:
- AllocationCurve: Validated ten-row risk level to allocation table
- RebalancePlanner: Drift filtering, rounding and ordered trade plans
- Classification: Trading pair to asset class bucketing
- Trade split: Class-level actions to per-pair order legs
- RebalancePlan / RebalanceAction: Plan data structures
"""

from tierbalance.portfolio.allocation_curve import (
    DEFAULT_CURVE,
    AllocationCurve,
    clamp_risk_level,
    risk_label,
    target_allocation,
)
from tierbalance.portfolio.base import (
    AllocationTarget,
    AssetClass,
    HoldingsSnapshot,
    RebalanceAction,
    RebalancePlan,
    TradeLeg,
    TradeSide,
)
from tierbalance.portfolio.classification import (
    aggregate_holdings,
    classify_pair,
    normalize_pair,
    position_values,
)
from tierbalance.portfolio.rebalance_planner import (
    RebalancePlanner,
    calculate_drift,
    needs_rebalance,
    plan,
)
from tierbalance.portfolio.trade_split import split_plan

__all__ = [
    "AllocationCurve",
    "AllocationTarget",
    "AssetClass",
    "DEFAULT_CURVE",
    "HoldingsSnapshot",
    "RebalanceAction",
    "RebalancePlan",
    "RebalancePlanner",
    "TradeLeg",
    "TradeSide",
    "aggregate_holdings",
    "calculate_drift",
    "clamp_risk_level",
    "classify_pair",
    "needs_rebalance",
    "normalize_pair",
    "plan",
    "position_values",
    "risk_label",
    "split_plan",
    "target_allocation",
]
