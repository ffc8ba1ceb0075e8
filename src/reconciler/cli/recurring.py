#!/usr/bin/env python3
"""
Recurring CLI - Recurring Bill Matching

Binds transactions in open budget periods to recurring definitions.
"""

import click

from .common import emit, get_orchestrator


@click.group()
def recurring() -> None:
    """Recurring bill matching commands."""
    pass


@recurring.command()
@click.option("--definition", "definition_ids", multiple=True, help="Only match these definitions")
@click.pass_context
def match(ctx: click.Context, definition_ids: tuple) -> None:
    """
    Match unbound transactions in every open period.

    Examples:
      reconciler recurring match
      reconciler recurring match --definition rent --definition netflix
    """
    emit(get_orchestrator(ctx).match_recurring_for_open_periods(list(definition_ids) or None))
