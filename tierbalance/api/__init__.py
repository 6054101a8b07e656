"""User-friendly APIs for TierBalance.

Components:
- RebalanceAPI: Risk level lookups, rebalance planning and display formatting
"""

from tierbalance.api.rebalance_api import RebalanceAPI

__all__ = ["RebalanceAPI"]
