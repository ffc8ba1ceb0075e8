#!/usr/bin/env python3
"""
Ledger CLI - Imports, Ignore Rules, Budget View, and Setup

Commands that work on the ledger without talking to the aggregator.
"""

import json

import click

from .common import emit, get_orchestrator, parse_period


@click.group("import")
def imports() -> None:
    """Bank statement import commands."""
    pass


@imports.command("csv")
@click.argument("account_id")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--period", help="Keep only rows in this month (YYYY-MM)")
@click.option(
    "--mapping",
    help='Column mapping as JSON, e.g. {"date": "Posted", "description": "Memo", "amount": "Amt"}',
)
@click.pass_context
def import_csv(ctx: click.Context, account_id: str, csv_file: str, period: str | None, mapping: str | None) -> None:
    """
    Import a bank or card CSV into an account.

    Headers are detected automatically unless --mapping is given. Rows
    already imported for the same account and period are skipped.

    Examples:
      reconciler import csv checking statement.csv
      reconciler import csv visa visa-2024-07.csv --period 2024-07
    """
    mapping_data = None
    if mapping:
        try:
            mapping_data = json.loads(mapping)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid mapping JSON: {e}", param_hint="--mapping") from e
        if not isinstance(mapping_data, dict):
            raise click.BadParameter("Mapping must be a JSON object", param_hint="--mapping")

    import_period = parse_period(period) if period else None
    emit(get_orchestrator(ctx).import_transactions_csv(account_id, csv_file, mapping_data, import_period))


@click.group()
def ignore() -> None:
    """Ignore rule commands."""
    pass


@ignore.command("add")
@click.argument("pattern")
@click.pass_context
def ignore_add(ctx: click.Context, pattern: str) -> None:
    """
    Ignore transactions whose description matches PATTERN.

    The rule also applies to transactions already in the ledger.

    Examples:
      reconciler ignore add "ONLINE TRANSFER"
    """
    emit(get_orchestrator(ctx).add_ignore_rule(pattern))


@click.command()
@click.argument("period")
@click.pass_context
def budget(ctx: click.Context, period: str) -> None:
    """
    Show spending by category for one month (YYYY-MM).

    Examples:
      reconciler budget 2024-07
    """
    year, month = parse_period(period)
    emit(get_orchestrator(ctx).budget_summary(year, month))


@click.group()
def setup() -> None:
    """Ledger setup commands."""
    pass


@setup.command("load")
@click.argument("setup_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def setup_load(ctx: click.Context, setup_file: str) -> None:
    """
    Load accounts, recurring definitions, ignore rules, and periods from YAML.

    Examples:
      reconciler setup load household.yaml
    """
    emit(get_orchestrator(ctx).apply_setup_file(setup_file))
