#!/usr/bin/env python3
"""
Sync CLI - Incremental Account Sync Commands

Runs cursor-based syncs and recovers accounts from error states.
"""

import click

from .common import emit, get_orchestrator


@click.group()
def sync() -> None:
    """Account sync commands."""
    pass


@sync.command()
@click.option("--account", "account_id", help="Sync only this account (default: every linked account)")
@click.pass_context
def run(ctx: click.Context, account_id: str | None) -> None:
    """
    Pull new, changed, and removed transactions.

    Examples:
      reconciler sync run
      reconciler sync run --account checking
    """
    orchestrator = get_orchestrator(ctx)
    if account_id:
        emit(orchestrator.run_account_sync(account_id))
        return

    result = orchestrator.run_all_syncs()
    click.echo(f"Synced {result['succeeded']} account(s), {result['failed']} failed", err=True)
    emit(result)


@sync.command()
@click.argument("account_id")
@click.pass_context
def reset(ctx: click.Context, account_id: str) -> None:
    """Forget an account's cursor so the next sync starts over."""
    emit(get_orchestrator(ctx).reset_sync_cursor(account_id))


@sync.command("clear-error")
@click.argument("account_id")
@click.pass_context
def clear_error(ctx: click.Context, account_id: str) -> None:
    """Clear a reauth or provider error after the user has fixed it."""
    emit(get_orchestrator(ctx).clear_account_error(account_id))
