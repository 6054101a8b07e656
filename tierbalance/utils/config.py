"""Configuration management for TierBalance.

This module provides simple YAML configuration loading and access, plus the
validated rebalancer settings consumed by the API layer.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from tierbalance.utils.exceptions import ConfigurationError
from tierbalance.utils.precision import to_decimal

ROOT_DIR = Path(__file__).parent.parent.parent

REBALANCE_INTERVALS = {
    "1h": timedelta(hours=1),
    "4h": timedelta(hours=4),
    "1d": timedelta(days=1),
}

ENV_OVERRIDES = {
    "REBALANCER_RISK_LEVEL": "risk_level",
    "REBALANCER_TOLERANCE_PCT": "tolerance_pct",
    "REBALANCER_TRADE_UNIT": "trade_unit",
}


class Config:
    """Simple configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> log_level = config.get("logging.level", "INFO")
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        """Initialize with configuration dictionary.

        Args:
            config_dict: Configuration data as nested dictionary
        """
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Supports nested keys using dot notation (e.g., "rebalancer.risk_level").

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation.

        Raises:
            KeyError: If key not found
        """
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary."""
        return self._config.copy()


@dataclass(frozen=True)
class RebalancerSettings:
    """Validated rebalancer configuration.

    Unlike the engine, which clamps any risk level, settings are strict: a
    config file saying ``risk_level: 12`` is a mistake worth surfacing.

    Attributes:
        risk_level: Default risk level, 1..10
        tolerance_pct: Minimum drift in percentage points before a class is
            rebalanced
        rebalance_interval: How often a bot re-evaluates the plan (1h, 4h, 1d)
        watchlist_size: Number of listed pairs per asset class considered when
            choosing which pair a buy goes to
        trade_unit: Smallest tradable monetary unit
    """

    risk_level: int = 5
    tolerance_pct: Decimal = Decimal("1.0")
    rebalance_interval: str = "1d"
    watchlist_size: int = 10
    trade_unit: Decimal = Decimal("0.01")

    def __post_init__(self):
        """Validate settings."""
        if isinstance(self.risk_level, bool) or not isinstance(self.risk_level, int):
            raise ConfigurationError(
                f"risk_level must be an integer, got {self.risk_level!r}"
            )
        if not 1 <= self.risk_level <= 10:
            raise ConfigurationError(
                f"risk_level must be between 1 and 10, got {self.risk_level}"
            )
        if not isinstance(self.tolerance_pct, Decimal) or not self.tolerance_pct.is_finite():
            raise ConfigurationError(
                f"tolerance_pct must be a finite Decimal, got {self.tolerance_pct!r}"
            )
        if self.tolerance_pct < 0:
            raise ConfigurationError(
                f"tolerance_pct must be >= 0, got {self.tolerance_pct}"
            )
        if self.rebalance_interval not in REBALANCE_INTERVALS:
            raise ConfigurationError(
                f"rebalance_interval must be one of {', '.join(REBALANCE_INTERVALS)}, "
                f"got {self.rebalance_interval!r}"
            )
        if isinstance(self.watchlist_size, bool) or not isinstance(self.watchlist_size, int):
            raise ConfigurationError(
                f"watchlist_size must be an integer, got {self.watchlist_size!r}"
            )
        if self.watchlist_size < 1:
            raise ConfigurationError(
                f"watchlist_size must be >= 1, got {self.watchlist_size}"
            )
        if not isinstance(self.trade_unit, Decimal) or not self.trade_unit.is_finite():
            raise ConfigurationError(
                f"trade_unit must be a finite Decimal, got {self.trade_unit!r}"
            )
        if self.trade_unit <= 0:
            raise ConfigurationError(f"trade_unit must be > 0, got {self.trade_unit}")

    @property
    def interval(self) -> timedelta:
        """Rebalance interval as a timedelta."""
        return REBALANCE_INTERVALS[self.rebalance_interval]

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "RebalancerSettings":
        """Build settings from a raw mapping (YAML section or env overrides).

        Numeric strings are accepted for every numeric field.

        Args:
            values: Raw settings; missing keys take the defaults

        Returns:
            Validated RebalancerSettings

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range
        """
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                f"Unknown rebalancer settings: {', '.join(sorted(unknown))}"
            )

        kwargs: dict[str, Any] = {}
        try:
            if "risk_level" in values:
                kwargs["risk_level"] = _to_int(values["risk_level"])
            if "tolerance_pct" in values:
                kwargs["tolerance_pct"] = to_decimal(values["tolerance_pct"])
            if "rebalance_interval" in values:
                kwargs["rebalance_interval"] = str(values["rebalance_interval"])
            if "watchlist_size" in values:
                kwargs["watchlist_size"] = _to_int(values["watchlist_size"])
            if "trade_unit" in values:
                kwargs["trade_unit"] = to_decimal(values["trade_unit"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid rebalancer setting: {e}") from e

        return cls(**kwargs)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError(f"Expected an integer, got bool {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeError(f"Expected an integer, got {value!r}")


def load_config(filepath: str | Path = None) -> Config:
    """Helper function to load configuration.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Config instance
    """
    if filepath is None:
        filepath = ROOT_DIR / "config" / "default.yaml"
    return Config.from_file(filepath)


def load_rebalancer_settings(
    config_file: str | Path = None,
    env_file: str | Path = None,
) -> RebalancerSettings:
    """Load rebalancer settings from YAML and environment variables.

    Reads the ``rebalancer`` section of the config file, then applies
    overrides from the environment. A ``.env`` file is loaded first when it
    exists; unlike the config file it is optional.

    Environment overrides:
        - REBALANCER_RISK_LEVEL
        - REBALANCER_TOLERANCE_PCT
        - REBALANCER_TRADE_UNIT

    Args:
        config_file: Path to YAML file. If None, uses config/default.yaml.
        env_file: Path to .env file. If None, uses .env at the project root.

    Returns:
        Validated RebalancerSettings

    Raises:
        FileNotFoundError: If config file not found
        ConfigurationError: If the section or any override is invalid

    Example:
        >>> settings = load_rebalancer_settings()
        >>> settings.risk_level
        5
    """
    if env_file is None:
        env_file = ROOT_DIR / ".env"
    if Path(env_file).exists():
        load_dotenv(env_file)

    config = load_config(config_file)

    section = config.get("rebalancer", {})
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"'rebalancer' section must be a mapping, got {type(section).__name__}"
        )

    values = dict(section)
    for env_var, field_name in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw:
            values[field_name] = raw

    return RebalancerSettings.from_dict(values)
