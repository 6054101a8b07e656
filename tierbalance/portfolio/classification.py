"""Trading pair to asset class classification.

Bots report open positions per trading pair ("ETH/USDT", "sol-usdt", "CASH").
This module buckets them into the five asset classes and sums their values
into a holdings snapshot for the planner. It never fetches prices: callers
pass position values already valued in the reference currency.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from tierbalance.portfolio.base import AssetClass
from tierbalance.utils.exceptions import NonFiniteHoldingError, RebalanceError
from tierbalance.utils.precision import exact_sum, to_decimal

COIN_CATEGORIES: Mapping[AssetClass, Tuple[str, ...]] = MappingProxyType(
    {
        AssetClass.STABLECOIN: ("CASH", "USDT", "USDC"),
        AssetClass.BITCOIN: ("BTC/USDT",),
        AssetClass.LARGE_CAP_ALT: ("ETH/USDT", "SOL/USDT", "BNB/USDT", "XRP/USDT"),
        AssetClass.MID_CAP_ALT: (
            "ADA/USDT",
            "DOGE/USDT",
            "AVAX/USDT",
            "DOT/USDT",
            "LINK/USDT",
            "UNI/USDT",
            "ATOM/USDT",
            "LTC/USDT",
        ),
        AssetClass.SMALL_CAP_ALT: (
            "NEAR/USDT",
            "APT/USDT",
            "ARB/USDT",
            "OP/USDT",
            "SUI/USDT",
            "PEPE/USDT",
            "WIF/USDT",
            "FET/USDT",
            "RENDER/USDT",
            "INJ/USDT",
        ),
    }
)

Positions = Mapping[str, Union[int, float, str, Decimal]]

_PAIR_INDEX = {
    pair: asset_class
    for asset_class, pairs in COIN_CATEGORIES.items()
    for pair in pairs
}


def normalize_pair(pair: str) -> str:
    """Canonical pair spelling: upper case, "/" separator.

    Example:
        >>> normalize_pair(" eth-usdt ")
        'ETH/USDT'
    """
    return pair.strip().replace("-", "/").upper()


def classify_pair(pair: str) -> AssetClass:
    """Asset class for a trading pair.

    Unlisted pairs are bucketed as Stablecoin.

    Args:
        pair: Trading pair such as "SOL/USDT" or "sol-usdt"

    Returns:
        AssetClass bucket
    """
    return _PAIR_INDEX.get(normalize_pair(pair), AssetClass.STABLECOIN)


def _sum_positions(amounts: Iterable[Decimal]) -> Decimal:
    try:
        return exact_sum(amounts)
    except ValueError as e:
        raise RebalanceError(f"Positions cannot be summed exactly: {e}") from e


def position_values(positions: Positions) -> Dict[str, Decimal]:
    """Validate per-pair position values and key them by normalized pair.

    Spellings of one pair ("eth-usdt", "ETH/USDT") are summed. Non-positive
    positions are skipped (closed or fully lost positions).

    Raises:
        NonFiniteHoldingError: If a position value is NaN or infinite
        RebalanceError: If a position value is not a number
    """
    parts: Dict[str, List[Decimal]] = {}

    for pair, raw in positions.items():
        try:
            value = to_decimal(raw)
        except TypeError as e:
            raise RebalanceError(f"Position value for {pair} must be a number: {e}") from e
        if not value.is_finite():
            raise NonFiniteHoldingError(f"Position value for {pair} must be finite, got {raw!r}")
        if value <= 0:
            continue
        parts.setdefault(normalize_pair(pair), []).append(value)

    return {pair: _sum_positions(amounts) for pair, amounts in parts.items()}


def aggregate_holdings(positions: Positions) -> Dict[AssetClass, Decimal]:
    """Sum per-pair position values into a holdings snapshot.

    Non-positive positions are skipped (closed or fully lost positions).

    Args:
        positions: {pair: value in reference currency}

    Returns:
        {AssetClass: total value} with all five classes present

    Raises:
        NonFiniteHoldingError: If a position value is NaN or infinite
        RebalanceError: If a position value is not a number

    Example:
        >>> aggregate_holdings({"BTC/USDT": 500, "eth-usdt": 300, "CASH": 200})[
        ...     AssetClass.LARGE_CAP_ALT
        ... ]
        Decimal('300')
    """
    parts: Dict[AssetClass, List[Decimal]] = {asset_class: [] for asset_class in AssetClass}

    for pair, value in position_values(positions).items():
        parts[classify_pair(pair)].append(value)

    return {asset_class: _sum_positions(amounts) for asset_class, amounts in parts.items()}
