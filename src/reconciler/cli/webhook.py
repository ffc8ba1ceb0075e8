#!/usr/bin/env python3
"""
Webhook CLI - Provider Notification Processing

Feeds a saved webhook body through the same path the HTTP handler uses and
waits for any syncs it queues.
"""

import json
from typing import TextIO

import click

from .common import emit, get_orchestrator


@click.group()
def webhook() -> None:
    """Webhook processing commands."""
    pass


@webhook.command()
@click.argument("payload_file", type=click.File("r", encoding="utf-8"))
@click.option("--timeout", type=float, default=300.0, help="Seconds to wait for queued syncs (default: 300)")
@click.pass_context
def process(ctx: click.Context, payload_file: TextIO, timeout: float) -> None:
    """
    Process a webhook payload from a file, or "-" for stdin.

    Examples:
      reconciler webhook process webhook.json
      cat webhook.json | reconciler webhook process -
    """
    try:
        payload = json.load(payload_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid webhook JSON: {e}") from e

    orchestrator = get_orchestrator(ctx)
    result = orchestrator.process_webhook(payload)
    if result.get("queued_accounts") and not orchestrator.wait_for_queued_syncs(timeout):
        click.echo("Queued syncs are still running", err=True)
    emit(result)
