#!/usr/bin/env python3
"""
Main CLI Entry Point for the Budget Reconciler

Provides unified command-line interface for sync, matching, and budgeting.
"""

import logging
import os

import click

from ..core.config import get_config, reload_config
from ..core.json_utils import format_json
from .common import emit, get_orchestrator


@click.group()
@click.option(
    "--config-env",
    type=click.Choice(["development", "test", "production"]),
    help="Override environment configuration",
)
@click.option("--ledger-file", type=click.Path(dir_okay=False), help="Override the ledger JSON file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context, config_env: str | None, ledger_file: str | None, verbose: bool, debug: bool
) -> None:
    """
    Budget Reconciler - Incremental Bank Sync and Reconciliation

    Pulls transactions from linked accounts, matches them against orders and
    recurring bills, and keeps ignored noise out of the budget.
    """
    ctx.ensure_object(dict)

    if config_env:
        os.environ["RECONCILER_ENV"] = config_env
    if ledger_file:
        os.environ["RECONCILER_LEDGER_FILE"] = ledger_file
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    if "orchestrator" not in ctx.obj:
        config = reload_config() if (config_env or ledger_file or debug) else get_config()
        ctx.obj["config"] = config

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("reconciler").setLevel(logging.DEBUG)

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug

    if verbose and "config" in ctx.obj:
        click.echo(f"Environment: {ctx.obj['config'].environment.value}")
        click.echo(f"Ledger file: {ctx.obj['config'].ledger_file}")


@main.command()
def version() -> None:
    """Show version information."""
    from reconciler import __author__, __version__

    click.echo(f"Budget Reconciler v{__version__}")
    click.echo(f"Author: {__author__}")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration (secrets redacted)."""
    config_obj = ctx.obj.get("config") or get_config()
    click.echo(format_json(config_obj.to_dict()))


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the ledger summary and per-account sync state."""
    emit(get_orchestrator(ctx).status())


# Register command groups
from .ledger import budget, ignore, imports, setup  # noqa: E402
from .orders import orders  # noqa: E402
from .plaid import plaid  # noqa: E402
from .recurring import recurring  # noqa: E402
from .sync import sync  # noqa: E402
from .webhook import webhook  # noqa: E402

main.add_command(sync)
main.add_command(webhook)
main.add_command(orders)
main.add_command(recurring)
main.add_command(ignore)
main.add_command(imports)
main.add_command(budget)
main.add_command(setup)
main.add_command(plaid)


if __name__ == "__main__":
    main()
