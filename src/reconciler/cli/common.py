#!/usr/bin/env python3
"""
Shared CLI Helpers

Builds the orchestrator once per invocation and renders operation results.
"""

from typing import Any

import click

from ..core.json_utils import format_json
from ..orchestrator import ReconciliationOrchestrator


def get_orchestrator(ctx: click.Context) -> ReconciliationOrchestrator:
    """
    Orchestrator for this invocation, built from the active config.

    Tests inject one through ctx.obj["orchestrator"]; otherwise it is built
    on first use and closed when the command finishes.
    """
    obj = ctx.ensure_object(dict)
    orchestrator = obj.get("orchestrator")
    if orchestrator is None:
        orchestrator = ReconciliationOrchestrator.from_config(obj.get("config"))
        obj["orchestrator"] = orchestrator
        ctx.call_on_close(orchestrator.close)
    return orchestrator


def emit(result: dict[str, Any]) -> None:
    """Print an operation result, or fail with its error."""
    error = result.get("error")
    if error:
        raise click.ClickException(f"[{error['code']}] {error['message']}")
    click.echo(format_json(result))


def parse_period(value: str) -> tuple[int, int]:
    """Parse YYYY-MM into (year, month)."""
    try:
        year_text, month_text = value.split("-")
        year, month = int(year_text), int(month_text)
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM, got {value!r}") from None
    if not 1 <= month <= 12:
        raise click.BadParameter(f"Month out of range in {value!r}")
    return year, month
