#!/usr/bin/env python3
"""
Plaid CLI - Account Linking Commands

Creates Link tokens and attaches (or detaches) provider items to ledger
accounts.
"""

import click

from .common import emit, get_orchestrator


@click.group()
def plaid() -> None:
    """Plaid account linking commands."""
    pass


@plaid.command("link-token")
@click.option("--user", "user_id", default="household", help="Client user id sent to Plaid")
@click.option("--account", "account_id", help="Create an update-mode token to repair this account")
@click.pass_context
def link_token(ctx: click.Context, user_id: str, account_id: str | None) -> None:
    """
    Create a Plaid Link token.

    Examples:
      reconciler plaid link-token
      reconciler plaid link-token --account checking
    """
    emit(get_orchestrator(ctx).create_link_token(user_id, account_id))


@plaid.command()
@click.argument("public_token")
@click.option(
    "--map",
    "mappings",
    multiple=True,
    required=True,
    help="LEDGER_ACCOUNT=PROVIDER_ACCOUNT_ID (repeatable)",
)
@click.option("--institution", help="Institution name stored on the accounts")
@click.pass_context
def link(ctx: click.Context, public_token: str, mappings: tuple, institution: str | None) -> None:
    """
    Exchange a public token and attach its accounts.

    Examples:
      reconciler plaid link public-sandbox-123 --map checking=BxBXxLj1m4HMXBm9WZZmCWVbPjX16EHwv99vp
    """
    account_map = {}
    for mapping in mappings:
        ledger_id, sep, provider_id = mapping.partition("=")
        if not sep or not ledger_id.strip() or not provider_id.strip():
            raise click.BadParameter(
                f"Expected LEDGER_ACCOUNT=PROVIDER_ACCOUNT_ID, got {mapping!r}", param_hint="--map"
            )
        account_map[ledger_id.strip()] = provider_id.strip()

    emit(get_orchestrator(ctx).link_item(public_token, account_map, institution))


@plaid.command()
@click.argument("account_id")
@click.pass_context
def unlink(ctx: click.Context, account_id: str) -> None:
    """Revoke an account's item and clear linkage on every account that shares it."""
    emit(get_orchestrator(ctx).unlink_item(account_id))
