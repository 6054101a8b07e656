"""Unit tests for RebalanceAPI."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

import pandas as pd
import pytest

from tierbalance.api.rebalance_api import LEG_COLUMNS, PLAN_COLUMNS, RebalanceAPI
from tierbalance.portfolio.allocation_curve import AllocationCurve
from tierbalance.portfolio.base import AssetClass, TradeSide
from tierbalance.portfolio.rebalance_planner import RebalancePlanner
from tierbalance.utils.config import RebalancerSettings
from tierbalance.utils.exceptions import InvalidToleranceError, RebalanceError

API_LOGGER = "tierbalance.api.rebalance_api"

DRIFTED = {"Stablecoin": 620, "Bitcoin": 290, "LargeCapAlt": 70, "MidCapAlt": 15, "SmallCapAlt": 5}


class TestRebalanceAPIInit:
    """Test cases for RebalanceAPI initialization."""

    def test_default_initialization(self) -> None:
        """Test RebalanceAPI with default configuration."""
        api = RebalanceAPI()

        assert api.settings == RebalancerSettings()
        assert isinstance(api.planner, RebalancePlanner)

    def test_custom_settings(self) -> None:
        """Test RebalanceAPI with custom settings."""
        api = RebalanceAPI(settings=RebalancerSettings(risk_level=8))

        assert api.settings.risk_level == 8
        assert api.describe_level()["level"] == 8


class TestAllocationLookup:
    """Test cases for allocation lookups."""

    @pytest.fixture
    def api(self) -> RebalanceAPI:
        """Create RebalanceAPI instance."""
        return RebalanceAPI()

    def test_describe_level(self, api: RebalanceAPI) -> None:
        """Test level description for a slider."""
        described = api.describe_level(7)

        assert described["level"] == 7
        assert described["label"] == "Aggressive"
        assert set(described["allocation"]) == {c.value for c in AssetClass}
        assert sum(described["allocation"].values()) == 100

    def test_describe_default_level(self, api: RebalanceAPI) -> None:
        """Test the configured default level is used when none is given."""
        assert api.describe_level()["label"] == "Balanced"

    def test_describe_clamps(self, api: RebalanceAPI) -> None:
        """Test slider values outside the range are clamped."""
        assert api.describe_level(-3)["level"] == 1
        assert api.describe_level(10.4)["level"] == 10

    def test_get_target_allocation(self, api: RebalanceAPI) -> None:
        """Test allocation lookup clamps like the curve."""
        assert api.get_target_allocation(99) == api.get_target_allocation(10)
        assert api.get_target_allocation()[AssetClass.STABLECOIN] == 25

    def test_custom_curve(self) -> None:
        """Test the planner's curve is used for lookups."""
        flat = AllocationCurve({lvl: {c: 20 for c in AssetClass} for lvl in range(1, 11)})
        api = RebalanceAPI(planner=RebalancePlanner(flat))

        assert set(api.get_target_allocation(1).values()) == {20}


class TestPlanRebalance:
    """Test cases for plan_rebalance and plan_from_positions."""

    @pytest.fixture
    def api(self) -> RebalanceAPI:
        """Create RebalanceAPI instance."""
        return RebalanceAPI()

    def test_plan_rebalance(self, api: RebalanceAPI) -> None:
        """Test planning with an explicit level."""
        result = api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1)

        assert result.risk_level == 1
        assert result.actions[0].delta_value == Decimal("-300.00")
        assert result.net_delta == 0

    def test_default_tolerance_from_settings(self) -> None:
        """Test the configured tolerance filters small drift."""
        api = RebalanceAPI(settings=RebalancerSettings(tolerance_pct=Decimal("5")))

        assert api.plan_rebalance(DRIFTED, risk_level=1).is_empty
        assert not api.plan_rebalance(DRIFTED, risk_level=1, tolerance_pct=1).is_empty

    def test_trade_unit_from_settings(self) -> None:
        """Test the configured trade unit drives rounding."""
        api = RebalanceAPI(settings=RebalancerSettings(trade_unit=Decimal("1")))
        result = api.plan_rebalance({"Stablecoin": 101}, risk_level=5)

        assert result.action_for(AssetClass.STABLECOIN).delta_value == Decimal("-75")

    def test_logs_plan_summary(self, api: RebalanceAPI, caplog: pytest.LogCaptureFixture) -> None:
        """Test a non-empty plan is logged with context."""
        with caplog.at_level(logging.INFO, logger=API_LOGGER):
            api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1)

        messages = [r.message for r in caplog.records if r.name == API_LOGGER]
        assert any("Rebalance planned" in m for m in messages)
        assert any("risk_level=1" in m and "actions=5" in m for m in messages)

    def test_logs_no_action(self, api: RebalanceAPI, caplog: pytest.LogCaptureFixture) -> None:
        """Test an empty plan is logged as within tolerance."""
        with caplog.at_level(logging.INFO, logger=API_LOGGER):
            api.plan_rebalance({}, risk_level=10)

        messages = [r.message for r in caplog.records if r.name == API_LOGGER]
        assert any("within tolerance" in m for m in messages)

    def test_invalid_tolerance_propagates(self, api: RebalanceAPI) -> None:
        """Test configuration errors reach the caller."""
        with pytest.raises(InvalidToleranceError):
            api.plan_rebalance(DRIFTED, tolerance_pct=-1)

    def test_plan_from_positions(self, api: RebalanceAPI) -> None:
        """Test per-pair positions are classified before planning."""
        positions = {"CASH": 900, "BTC/USDT": 100}

        from_positions = api.plan_from_positions(positions, risk_level=1)
        from_holdings = api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1)

        assert from_positions == from_holdings

    def test_plan_trades(self, api: RebalanceAPI) -> None:
        """Test positions are planned and split into per-pair legs."""
        result, legs = api.plan_trades({"CASH": 900, "BTC/USDT": 100}, risk_level=1)

        assert result == api.plan_from_positions({"CASH": 900, "BTC/USDT": 100}, risk_level=1)
        assert [(leg.pair, leg.side) for leg in legs[:2]] == [
            ("CASH", TradeSide.SELL),
            ("BTC/USDT", TradeSide.BUY),
        ]
        assert sum((leg.signed_amount for leg in legs), Decimal("0")) == 0

    def test_plan_trades_uses_watchlist_size(self) -> None:
        """Test the configured watchlist bounds the pairs a buy can go to."""
        positions = {"CASH": 1000}
        volumes = {"SOL/USDT": 9e9}

        _, wide = RebalanceAPI().plan_trades(positions, risk_level=5, volumes=volumes)
        _, narrow = RebalanceAPI(RebalancerSettings(watchlist_size=1)).plan_trades(
            positions, risk_level=5, volumes=volumes
        )

        assert "SOL/USDT" in [leg.pair for leg in wide]
        assert "SOL/USDT" not in [leg.pair for leg in narrow]
        assert "LargeCapAlt_BASKET" in [leg.pair for leg in narrow]

    def test_plan_trades_uses_trade_unit(self) -> None:
        """Test sell legs are split on the configured trade unit."""
        api = RebalanceAPI(RebalancerSettings(trade_unit=Decimal("1")))
        _, legs = api.plan_trades({"ETH/USDT": 1, "SOL/USDT": 1, "BNB/USDT": 1}, risk_level=10)

        assert all(leg.amount == leg.amount.to_integral_value() for leg in legs)

    def test_plan_trades_logs_summary(
        self, api: RebalanceAPI, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test leg generation is logged with counts."""
        with caplog.at_level(logging.INFO, logger=API_LOGGER):
            api.plan_trades({"CASH": 900, "BTC/USDT": 100}, risk_level=1)

        assert "Trade legs generated | legs=5 buys=4 sells=1" in caplog.text

    def test_plan_trades_invalid_volume(self, api: RebalanceAPI) -> None:
        """Test splitting errors reach the caller."""
        with pytest.raises(RebalanceError, match="Volume for"):
            api.plan_trades({"CASH": 900}, risk_level=1, volumes={"BTC/USDT": object()})

class TestShouldRebalance:
    """Test cases for should_rebalance."""

    @pytest.fixture
    def api(self) -> RebalanceAPI:
        """Create RebalanceAPI instance."""
        return RebalanceAPI()

    def test_drifted(self, api: RebalanceAPI) -> None:
        """Test a 2-point drift triggers at the default 1-point tolerance."""
        assert api.should_rebalance(DRIFTED, risk_level=1)

    def test_custom_threshold(self, api: RebalanceAPI) -> None:
        """Test custom threshold parameter."""
        assert api.should_rebalance(DRIFTED, risk_level=1, threshold_pct=2)
        assert not api.should_rebalance(DRIFTED, risk_level=1, threshold_pct=5)

    def test_empty_portfolio(self, api: RebalanceAPI) -> None:
        """Test an empty portfolio never needs rebalancing."""
        assert not api.should_rebalance({}, risk_level=3)



class TestRebalanceSchedule:
    """Test cases for the configured rebalance interval."""

    NOW = datetime(2026, 3, 1, 12, 0)

    def test_never_rebalanced(self) -> None:
        """Test a portfolio never rebalanced is always due."""
        assert RebalanceAPI().is_rebalance_due(None, self.NOW)

    @pytest.mark.parametrize(
        "interval,elapsed,due",
        [
            ("1h", timedelta(minutes=59), False),
            ("1h", timedelta(hours=1), True),
            ("4h", timedelta(hours=3), False),
            ("4h", timedelta(hours=5), True),
            ("1d", timedelta(hours=23), False),
            ("1d", timedelta(days=1), True),
        ],
    )
    def test_interval_elapsed(self, interval: str, elapsed: timedelta, due: bool) -> None:
        """Test due exactly once the configured interval has passed."""
        api = RebalanceAPI(RebalancerSettings(rebalance_interval=interval))

        assert api.is_rebalance_due(self.NOW - elapsed, self.NOW) is due

class TestFormatting:
    """Test cases for DataFrame formatting."""

    @pytest.fixture
    def api(self) -> RebalanceAPI:
        """Create RebalanceAPI instance."""
        return RebalanceAPI()

    def test_format_empty_plan(self, api: RebalanceAPI) -> None:
        """Test formatting an empty plan."""
        df = api.format_plan(api.plan_rebalance({}))

        assert isinstance(df, pd.DataFrame)
        assert len(df) == 0
        assert list(df.columns) == PLAN_COLUMNS

    def test_format_plan(self, api: RebalanceAPI) -> None:
        """Test formatting a plan keeps execution order."""
        df = api.format_plan(api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1))

        assert len(df) == 5
        assert list(df.columns) == PLAN_COLUMNS
        assert df.iloc[0]["asset_class"] == "Stablecoin"
        assert df.iloc[0]["action"] == "SELL"
        assert df.iloc[0]["amount"] == 300.0
        assert df.iloc[0]["delta_value"] == -300.0
        assert df.iloc[1]["action"] == "BUY"
        assert df["delta_value"].sum() == pytest.approx(0.0)

    def test_format_plan_post_trade_value(self, api: RebalanceAPI) -> None:
        """Test the post-trade column shows where the absorbing class lands."""
        df = api.format_plan(api.plan_rebalance(DRIFTED, risk_level=1))

        stable = df[df["asset_class"] == "Stablecoin"].iloc[0]
        assert stable["target_value"] == 600.0
        assert stable["post_trade_value"] == 610.0

    def test_format_legs(self, api: RebalanceAPI) -> None:
        """Test formatting trade legs."""
        _, legs = api.plan_trades({"CASH": 900, "BTC/USDT": 100}, risk_level=1)
        df = api.format_legs(legs)

        assert list(df.columns) == LEG_COLUMNS
        assert len(df) == 5
        assert df.iloc[0].to_dict() == {
            "pair": "CASH",
            "asset_class": "Stablecoin",
            "side": "SELL",
            "amount": 300.0,
        }
        assert df.iloc[2]["pair"] == "LargeCapAlt_BASKET"

    def test_format_no_legs(self, api: RebalanceAPI) -> None:
        """Test formatting an empty leg list keeps the columns."""
        df = api.format_legs(())

        assert len(df) == 0
        assert list(df.columns) == LEG_COLUMNS

    def test_format_allocation(self, api: RebalanceAPI) -> None:
        """Test formatting an allocation in asset-class order."""
        df = api.format_allocation(api.get_target_allocation(1))

        assert list(df["asset_class"]) == [c.value for c in AssetClass]
        assert list(df["target_pct"]) == [60, 30, 7, 2, 1]
        assert df.iloc[0]["target_pct_str"] == "60%"

    def test_curve_table(self, api: RebalanceAPI) -> None:
        """Test the full curve table."""
        df = api.curve_table()

        assert df.shape == (10, 6)
        assert df.index.name == "risk_level"
        assert list(df.index) == list(range(1, 11))
        assert df.loc[10, "label"] == "YOLO"
        assert (df[[c.value for c in AssetClass]].sum(axis=1) == 100).all()


def test_logs_each_action_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    """Test every planned action is logged at DEBUG with readable fields."""
    api = RebalanceAPI()

    with caplog.at_level(logging.DEBUG, logger=API_LOGGER):
        result = api.plan_rebalance({"Stablecoin": 900, "Bitcoin": 100}, risk_level=1)

    debug = [r.message for r in caplog.records if r.levelno == logging.DEBUG]
    assert len(debug) == len(result.actions)
    assert "asset_class=Stablecoin" in debug[0]
    assert "side=SELL" in debug[0]
    assert "delta_value=-300.00" in debug[0]
