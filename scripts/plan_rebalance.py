#!/usr/bin/env python3
"""Risk-tiered rebalancing CLI tool.

Examples:
    # Show the whole allocation curve
    python scripts/plan_rebalance.py curve

    # Plan a rebalance for a level-1 portfolio
    python scripts/plan_rebalance.py plan --level 1 \\
        -h Stablecoin=900 -h Bitcoin=100

    # Plan from per-pair positions with a 2-point tolerance
    python scripts/plan_rebalance.py plan --level 7 --tolerance 2 \\
        -p BTC/USDT=4200 -p ETH/USDT=1800 -p CASH=4000

    # Route buys to the most traded pair
    python scripts/plan_rebalance.py plan --level 7 -p BTC/USDT=4200 -p CASH=4000 \\
        -v ETH/USDT=9e9 -v SOL/USDT=3e9
"""

import sys
from typing import Dict, Tuple

import click

sys.path.append(".")

from tierbalance.api.rebalance_api import RebalanceAPI
from tierbalance.utils.config import load_rebalancer_settings
from tierbalance.utils.exceptions import TierBalanceError
from tierbalance.utils.logging import setup_logging


def parse_values(value_list: Tuple[str, ...]) -> Dict[str, str]:
    """Parse "key=value" strings into a dictionary.

    Args:
        value_list: Tuple of "key=value" strings

    Returns:
        Dictionary of raw string values (the planner parses numbers)
    """
    values = {}
    for item in value_list:
        if "=" not in item:
            click.echo(f"Warning: Invalid value '{item}', expected 'key=value'")
            continue

        key, value = item.split("=", 1)
        values[key.strip()] = value.strip()

    return values


@click.group()
@click.option("--config", "config_file", type=click.Path(), default=None, help="YAML config file")
@click.option("--log-level", default="WARNING", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config_file: str, log_level: str):
    """TierBalance - risk-tiered portfolio rebalancing."""
    setup_logging(level=log_level)
    try:
        settings = load_rebalancer_settings(config_file)
    except (FileNotFoundError, TierBalanceError) as e:
        click.echo(f"✗ Config error: {e}")
        sys.exit(1)
    ctx.obj = RebalanceAPI(settings=settings)


@cli.command()
@click.pass_obj
def curve(api: RebalanceAPI):
    """Print the target allocation for every risk level."""
    click.echo("=" * 70)
    click.echo("ALLOCATION CURVE (%)")
    click.echo("=" * 70)
    click.echo(api.curve_table().to_string())


@cli.command()
@click.option("--level", type=float, default=None, help="Risk level 1-10 (default from config)")
@click.option("--tolerance", type=str, default=None, help="Drift tolerance in percentage points")
@click.option("--holding", "-h", multiple=True, help="Asset class value (Class=value)")
@click.option("--position", "-p", multiple=True, help="Pair position value (PAIR=value)")
@click.option("--volume", "-v", multiple=True, help="Pair 24h volume for buy routing (PAIR=value)")
@click.pass_obj
def plan(api: RebalanceAPI, level, tolerance, holding, position, volume):
    """Compute the rebalance plan for the given holdings."""
    if holding and position:
        click.echo("✗ Error: use either --holding or --position, not both")
        sys.exit(2)
    if volume and not position:
        click.echo("✗ Error: --volume requires --position")
        sys.exit(2)

    legs = ()

    try:
        if position:
            result, legs = api.plan_trades(
                parse_values(position),
                risk_level=level,
                tolerance_pct=tolerance,
                volumes=parse_values(volume),
            )
        else:
            result = api.plan_rebalance(
                parse_values(holding), risk_level=level, tolerance_pct=tolerance
            )
    except TierBalanceError as e:
        click.echo(f"✗ Error: {e}")
        sys.exit(1)

    described = api.describe_level(result.risk_level)
    click.echo("=" * 70)
    click.echo(f"Risk level:    {described['level']} ({described['label']})")
    click.echo(f"Total value:   {result.total_value:,.2f}")
    click.echo(f"Tolerance:     {result.tolerance_pct} pts")
    click.echo("=" * 70)

    if result.is_empty:
        click.echo("✓ No rebalance needed")
        return

    click.echo(api.format_plan(result).to_string(index=False))

    if legs:
        click.echo()
        click.echo("Orders:")
        click.echo(api.format_legs(legs).to_string(index=False))
    click.echo()
    click.echo(f"Turnover: {result.turnover:,.2f}")


if __name__ == "__main__":
    cli()
