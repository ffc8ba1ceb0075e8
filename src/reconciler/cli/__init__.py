"""
Command Line Interface Package

Thin click wrappers around ReconciliationOrchestrator. Every command prints
the operation's JSON result; failures exit non-zero with the error code.

Command Structure:
- reconciler: Main entry point with utility commands (version, config, status)
- reconciler sync: Run, reset, and recover account syncs
- reconciler webhook: Process a provider webhook payload
- reconciler orders: Import, match, link, and ignore marketplace orders
- reconciler recurring: Match recurring bills in open periods
- reconciler ledger: CSV import, ignore rules, budget view, setup file
- reconciler plaid: Link tokens, linking, and unlinking items
"""

from .main import main

__all__ = ["main"]
