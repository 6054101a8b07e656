"""User-friendly Rebalance API for risk-tiered portfolios.

This module provides a simple, high-level interface over the allocation curve
and the rebalance planner: configured defaults, logging, and DataFrame views
for display.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from tierbalance.portfolio.allocation_curve import clamp_risk_level, risk_label
from tierbalance.portfolio.base import (
    AllocationTarget,
    AssetClass,
    HoldingsSnapshot,
    RebalancePlan,
    TradeLeg,
    TradeSide,
)
from tierbalance.portfolio.classification import aggregate_holdings
from tierbalance.portfolio.rebalance_planner import RebalancePlanner, needs_rebalance
from tierbalance.portfolio.trade_split import split_plan
from tierbalance.utils.config import RebalancerSettings
from tierbalance.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

PLAN_COLUMNS = [
    "asset_class",
    "action",
    "amount",
    "delta_value",
    "current_value",
    "target_value",
    "post_trade_value",
    "current_pct",
    "target_pct",
    "drift_pct",
]

LEG_COLUMNS = ["pair", "asset_class", "side", "amount"]


class RebalanceAPI:
    """High-level API for risk-tiered rebalancing.

    Example:
        >>> from tierbalance.api.rebalance_api import RebalanceAPI
        >>>
        >>> api = RebalanceAPI()
        >>> api.describe_level(7)["label"]
        'Aggressive'
        >>> plan = api.plan_rebalance(
        ...     {"Stablecoin": 5000, "Bitcoin": 3000, "LargeCapAlt": 2000},
        ...     risk_level=7,
        ... )
        >>> print(api.format_plan(plan))
    """

    def __init__(
        self,
        settings: Optional[RebalancerSettings] = None,
        planner: Optional[RebalancePlanner] = None,
    ):
        """Initialize RebalanceAPI.

        Args:
            settings: Defaults for risk level, tolerance and trade unit
                (defaults to RebalancerSettings())
            planner: RebalancePlanner instance (defaults to the built-in curve)
        """
        self.settings = settings or RebalancerSettings()
        self.planner = planner or RebalancePlanner()

        logger.debug(
            "RebalanceAPI initialized with risk_level=%d tolerance_pct=%s",
            self.settings.risk_level,
            self.settings.tolerance_pct,
        )

    def _level(self, risk_level: Optional[Union[int, float]]) -> int:
        return clamp_risk_level(self.settings.risk_level if risk_level is None else risk_level)

    def get_target_allocation(
        self, risk_level: Optional[Union[int, float]] = None
    ) -> AllocationTarget:
        """Target allocation for a risk level (configured default if None).

        Cheap enough to call on every slider movement.
        """
        return self.planner.curve.target(self._level(risk_level))

    def describe_level(self, risk_level: Optional[Union[int, float]] = None) -> Dict:
        """Everything a risk slider needs to render one level.

        Returns:
            Dictionary with:
                - level: Clamped risk level
                - label: Human-readable name ("Balanced", "YOLO", ...)
                - allocation: {asset class value: percent}
        """
        level = self._level(risk_level)
        allocation = self.planner.curve.target(level)
        return {
            "level": level,
            "label": risk_label(level),
            "allocation": {cls.value: pct for cls, pct in allocation.items()},
        }

    def plan_rebalance(
        self,
        holdings: HoldingsSnapshot,
        risk_level: Optional[Union[int, float]] = None,
        tolerance_pct: Optional[Union[int, float, Decimal]] = None,
    ) -> RebalancePlan:
        """Compute a rebalance plan with configured defaults.

        Args:
            holdings: {AssetClass or name: market value}
            risk_level: Risk level (default: settings.risk_level)
            tolerance_pct: Drift tolerance in points (default: settings.tolerance_pct)

        Returns:
            RebalancePlan

        Raises:
            RebalanceError: If tolerance is invalid or a holding is not finite
        """
        level = self._level(risk_level)
        tolerance = self.settings.tolerance_pct if tolerance_pct is None else tolerance_pct

        result = self.planner.plan(
            level, holdings, tolerance_pct=tolerance, unit=self.settings.trade_unit
        )

        if result.is_empty:
            log_with_context(
                logger,
                "info",
                "Portfolio within tolerance, no rebalance needed",
                risk_level=level,
                total_value=result.total_value,
            )
        else:
            log_with_context(
                logger,
                "info",
                "Rebalance planned",
                risk_level=level,
                total_value=result.total_value,
                actions=len(result.actions),
                turnover=result.turnover,
            )
            for action in result.actions:
                log_with_context(
                    logger,
                    "debug",
                    "Planned action",
                    asset_class=action.asset_class,
                    side=action.side,
                    delta_value=action.delta_value,
                    drift_pct=action.drift_pct,
                )

        return result

    def plan_from_positions(
        self,
        positions: Mapping[str, Union[int, float, str, Decimal]],
        risk_level: Optional[Union[int, float]] = None,
        tolerance_pct: Optional[Union[int, float, Decimal]] = None,
    ) -> RebalancePlan:
        """Compute a plan from per-pair position values.

        Args:
            positions: {pair: value}, e.g. {"BTC/USDT": 4200, "CASH": 800}
            risk_level: Risk level (default: settings.risk_level)
            tolerance_pct: Drift tolerance (default: settings.tolerance_pct)

        Returns:
            RebalancePlan
        """
        holdings = aggregate_holdings(positions)
        logger.debug("Aggregated %d positions into %s", len(positions), holdings)
        return self.plan_rebalance(holdings, risk_level=risk_level, tolerance_pct=tolerance_pct)

    def plan_trades(
        self,
        positions: Mapping[str, Union[int, float, str, Decimal]],
        risk_level: Optional[Union[int, float]] = None,
        tolerance_pct: Optional[Union[int, float, Decimal]] = None,
        volumes: Optional[Mapping[str, Union[int, float, str, Decimal]]] = None,
    ) -> Tuple[RebalancePlan, Tuple[TradeLeg, ...]]:
        """Compute a plan from positions and break it into per-pair legs.

        Buys consider the first ``settings.watchlist_size`` listed pairs of a
        class plus any held pairs.

        Args:
            positions: {pair: value}
            risk_level: Risk level (default: settings.risk_level)
            tolerance_pct: Drift tolerance (default: settings.tolerance_pct)
            volumes: Optional {pair: 24h volume} used to pick buy pairs

        Returns:
            Tuple of (plan, legs)

        Raises:
            RebalanceError: If planning or splitting fails
        """
        result = self.plan_from_positions(
            positions, risk_level=risk_level, tolerance_pct=tolerance_pct
        )
        legs = split_plan(
            result,
            positions,
            volumes=volumes,
            watchlist_size=self.settings.watchlist_size,
            unit=self.settings.trade_unit,
        )

        log_with_context(
            logger,
            "info",
            "Trade legs generated",
            legs=len(legs),
            buys=sum(1 for leg in legs if leg.side == TradeSide.BUY),
            sells=sum(1 for leg in legs if leg.side == TradeSide.SELL),
        )
        return result, legs

    def is_rebalance_due(
        self, last_rebalanced_at: Optional[datetime], now: datetime
    ) -> bool:
        """Check whether the configured rebalance interval has elapsed.

        Args:
            last_rebalanced_at: Time of the last rebalance (None if never)
            now: Current time, comparable with last_rebalanced_at

        Returns:
            True if never rebalanced or at least settings.interval has passed
        """
        if last_rebalanced_at is None:
            return True
        return now - last_rebalanced_at >= self.settings.interval

    def should_rebalance(
        self,
        holdings: HoldingsSnapshot,
        risk_level: Optional[Union[int, float]] = None,
        threshold_pct: Optional[Union[int, float, Decimal]] = None,
    ) -> bool:
        """Check if any asset class drifted at least the threshold.

        Args:
            holdings: {AssetClass or name: market value}
            risk_level: Risk level (default: settings.risk_level)
            threshold_pct: Drift threshold in points (default: settings.tolerance_pct)

        Returns:
            True if rebalancing is recommended; False for an empty portfolio
        """
        threshold = self.settings.tolerance_pct if threshold_pct is None else threshold_pct
        drift = self.planner.drift(self._level(risk_level), holdings)
        return needs_rebalance(drift, threshold)

    def format_plan(self, plan: RebalancePlan) -> pd.DataFrame:
        """Format a plan as a DataFrame for display, in execution order.

        Example:
            >>> plan = api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1)
            >>> api.format_plan(plan)[["asset_class", "action", "amount"]]
        """
        if plan.is_empty:
            return pd.DataFrame(columns=PLAN_COLUMNS)

        data = [
            {
                "asset_class": a.asset_class.value,
                "action": a.side.value,
                "amount": float(a.amount),
                "delta_value": float(a.delta_value),
                "current_value": float(a.current_value),
                "target_value": float(a.target_value),
                "post_trade_value": float(a.post_trade_value),
                "current_pct": round(float(a.current_pct), 2),
                "target_pct": a.target_pct,
                "drift_pct": round(float(a.drift_pct), 2),
            }
            for a in plan.actions
        ]

        return pd.DataFrame(data, columns=PLAN_COLUMNS)

    def format_legs(self, legs: Sequence[TradeLeg]) -> pd.DataFrame:
        """Format trade legs as a DataFrame, in the order given."""
        data = [
            {
                "pair": leg.pair,
                "asset_class": leg.asset_class.value,
                "side": leg.side.value,
                "amount": float(leg.amount),
            }
            for leg in legs
        ]
        return pd.DataFrame(data, columns=LEG_COLUMNS)

    def format_allocation(self, allocation: AllocationTarget) -> pd.DataFrame:
        """Format an allocation as a DataFrame, in asset-class order."""
        data = [
            {
                "asset_class": cls.value,
                "target_pct": allocation.get(cls, 0),
                "target_pct_str": f"{allocation.get(cls, 0)}%",
            }
            for cls in AssetClass
        ]
        return pd.DataFrame(data)

    def curve_table(self) -> pd.DataFrame:
        """The whole allocation curve: one row per level, one column per class."""
        rows = self.planner.curve.rows()
        df = pd.DataFrame(
            [
                {"label": risk_label(level), **{cls.value: row[cls] for cls in AssetClass}}
                for level, row in sorted(rows.items())
            ],
            index=pd.Index(sorted(rows), name="risk_level"),
        )
        return df
