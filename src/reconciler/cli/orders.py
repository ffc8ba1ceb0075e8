#!/usr/bin/env python3
"""
Orders CLI - Marketplace Order Matching Commands

Imports order history and links orders to the card charges that paid for
them, automatically or by hand.
"""

import json
from pathlib import Path

import click

from .common import emit, get_orchestrator


@click.group()
def orders() -> None:
    """Marketplace order matching commands."""
    pass


@orders.command("import")
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_orders(ctx: click.Context, order_file: str) -> None:
    """
    Import orders from a CSV export or a JSON list, then auto-match the new ones.

    Examples:
      reconciler orders import Retail.OrderHistory.1.csv
      reconciler orders import orders.json
    """
    orchestrator = get_orchestrator(ctx)
    path = Path(order_file)
    if path.suffix.lower() == ".json":
        try:
            with open(path, encoding="utf-8") as f:
                records = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid order JSON: {e}") from e
        if not isinstance(records, list):
            raise click.ClickException("Order JSON must be a list of order objects")
        emit(orchestrator.import_orders(records))
    else:
        emit(orchestrator.import_orders_csv(path))


@orders.command()
@click.option("--order", "order_ids", multiple=True, help="Only match these orders")
@click.pass_context
def match(ctx: click.Context, order_ids: tuple) -> None:
    """Auto-link unlinked orders whose best candidate is clear."""
    emit(get_orchestrator(ctx).match_orders(list(order_ids) or None))


@orders.command()
@click.argument("order_id")
@click.pass_context
def candidates(ctx: click.Context, order_id: str) -> None:
    """Show ranked candidate transactions for one order without linking."""
    emit(get_orchestrator(ctx).find_order_candidates(order_id))


@orders.command()
@click.argument("order_id")
@click.argument("transaction_id")
@click.pass_context
def link(ctx: click.Context, order_id: str, transaction_id: str) -> None:
    """Link an order to a specific transaction."""
    emit(get_orchestrator(ctx).link_order(order_id, transaction_id))


@orders.command()
@click.argument("order_id")
@click.pass_context
def unlink(ctx: click.Context, order_id: str) -> None:
    """Remove an order's transaction link."""
    emit(get_orchestrator(ctx).link_order(order_id, None))


@orders.command()
@click.argument("order_id")
@click.option("--undo", is_flag=True, help="Stop ignoring the order")
@click.pass_context
def ignore(ctx: click.Context, order_id: str, undo: bool) -> None:
    """Exclude an order from auto-matching."""
    emit(get_orchestrator(ctx).set_ignored(order_id, not undo))
