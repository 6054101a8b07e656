"""Per-pair order legs for a rebalance plan.

The planner works on five asset-class buckets; exchanges trade pairs. This
module breaks each class-level action into orders on concrete pairs:

- A sell is split across the pairs held in that class, in proportion to
  their value
- A buy goes to one pair: the highest-volume watchlist candidate when volumes
  are known, else the largest held pair, else the class basket

Each class's legs sum to exactly the action's delta, so the legs of a plan
still sum to zero.
"""

from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from tierbalance.portfolio.base import (
    AssetClass,
    RebalancePlan,
    TradeLeg,
    TradeSide,
)
from tierbalance.portfolio.classification import (
    COIN_CATEGORIES,
    Positions,
    classify_pair,
    normalize_pair,
    position_values,
)
from tierbalance.portfolio.rebalance_planner import validate_trade_unit
from tierbalance.utils.exceptions import RebalanceError
from tierbalance.utils.precision import DEFAULT_TRADE_UNIT, Number, decimal_context, to_decimal


def basket_pair(asset_class: AssetClass) -> str:
    """Placeholder pair for buying a class with no known concrete pair."""
    return f"{asset_class.value}_BASKET"


def apportion(total: Decimal, weights: Sequence[Decimal], unit: Decimal) -> List[Decimal]:
    """Split ``total`` in proportion to ``weights``, summing to ``total`` exactly.

    Shares are floored to the unit, then the leftover units go to the largest
    fractional remainders (ties to the earlier weight). A sub-unit leftover,
    possible when total is not a multiple of unit, goes to the first weight.

    Args:
        total: Non-negative amount to split
        weights: Positive weights, largest first
        unit: Smallest tradable amount

    Returns:
        One amount per weight, in the same order

    Example:
        >>> apportion(Decimal("100.00"), [Decimal("1")] * 3, Decimal("0.01"))
        [Decimal('33.34'), Decimal('33.33'), Decimal('33.33')]
    """
    if not weights:
        return []

    with localcontext(decimal_context([total, *weights], unit)):
        weight_sum = sum(weights, Decimal("0"))
        shares = [total * w / weight_sum for w in weights]
        amounts = [
            (share / unit).to_integral_value(rounding=ROUND_FLOOR) * unit for share in shares
        ]

        remainder = total - sum(amounts, Decimal("0"))
        by_fraction = sorted(range(len(shares)), key=lambda i: (amounts[i] - shares[i], i))
        for i in by_fraction:
            if remainder < unit:
                break
            amounts[i] += unit
            remainder -= unit
        if remainder:
            amounts[0] += remainder

        return [amount + 0 for amount in amounts]


def _held_by_class(positions: Positions) -> Dict[AssetClass, List[Tuple[str, Decimal]]]:
    """Held pairs per class, largest value first (ties by pair name)."""
    held: Dict[AssetClass, List[Tuple[str, Decimal]]] = {c: [] for c in AssetClass}
    for pair, value in position_values(positions).items():
        held[classify_pair(pair)].append((pair, value))
    for pairs in held.values():
        pairs.sort(key=lambda item: (-item[1], item[0]))
    return held


def _parse_volumes(volumes: Optional[Mapping[str, Number]]) -> Dict[str, Decimal]:
    parsed: Dict[str, Decimal] = {}
    for pair, raw in (volumes or {}).items():
        try:
            volume = to_decimal(raw)
        except TypeError as e:
            raise RebalanceError(f"Volume for {pair} must be a number: {e}") from e
        if volume.is_finite():
            parsed[normalize_pair(pair)] = volume
    return parsed


def _buy_pair(
    asset_class: AssetClass,
    held: List[Tuple[str, Decimal]],
    volumes: Dict[str, Decimal],
    watchlist_size: Optional[int],
) -> str:
    candidates = list(COIN_CATEGORIES[asset_class][:watchlist_size])
    candidates += [pair for pair, _ in held if pair not in candidates]

    traded = [pair for pair in candidates if pair in volumes]
    if traded:
        return max(traded, key=lambda pair: volumes[pair])
    if held:
        return held[0][0]
    return basket_pair(asset_class)


def split_plan(
    plan: RebalancePlan,
    positions: Positions,
    volumes: Optional[Mapping[str, Number]] = None,
    watchlist_size: Optional[int] = None,
    unit: Number = DEFAULT_TRADE_UNIT,
) -> Tuple[TradeLeg, ...]:
    """Break a rebalance plan into per-pair order legs.

    Args:
        plan: Plan computed from the same positions
        positions: {pair: value}, as passed to aggregate_holdings
        volumes: Optional {pair: 24h volume}; buys prefer the most traded pair
        watchlist_size: Number of listed pairs per class considered for buys
            (held pairs are always considered); None considers all
        unit: Smallest tradable amount for sell splits

    Returns:
        Legs in plan order; sells within a class largest first. HOLD actions
        produce no legs.

    Raises:
        RebalanceError: If the plan sells a class with no held positions,
            watchlist_size is below 1, or a volume is not a number
        InvalidTradeUnitError: If unit is not a positive finite amount

    Example:
        >>> positions = {"CASH": 900, "BTC/USDT": 100}
        >>> legs = split_plan(plan(1, aggregate_holdings(positions)), positions)
        >>> [(leg.pair, leg.side.value, str(leg.amount)) for leg in legs][:2]
        [('CASH', 'SELL', '300.00'), ('BTC/USDT', 'BUY', '200.00')]
    """
    if watchlist_size is not None and watchlist_size < 1:
        raise RebalanceError(f"watchlist_size must be >= 1, got {watchlist_size}")

    trade_unit = validate_trade_unit(unit)
    held = _held_by_class(positions)
    volume_by_pair = _parse_volumes(volumes)
    legs: List[TradeLeg] = []

    for action in plan.actions:
        asset_class = action.asset_class

        if action.side == TradeSide.SELL:
            holders = held[asset_class]
            if not holders:
                raise RebalanceError(
                    f"Plan sells {action.amount} of {asset_class.value} "
                    "but no positions are held in that class"
                )
            try:
                amounts = apportion(action.amount, [value for _, value in holders], trade_unit)
            except ValueError as e:
                raise RebalanceError(f"Cannot split {asset_class.value} sell exactly: {e}") from e
            legs.extend(
                TradeLeg(pair, asset_class, TradeSide.SELL, amount)
                for (pair, _), amount in zip(holders, amounts)
                if amount > 0
            )
        elif action.side == TradeSide.BUY:
            pair = _buy_pair(asset_class, held[asset_class], volume_by_pair, watchlist_size)
            legs.append(TradeLeg(pair, asset_class, TradeSide.BUY, action.amount))

    return tuple(legs)
