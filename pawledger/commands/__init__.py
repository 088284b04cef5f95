"""
CLI Commands for PawLedger.

Usage:
    flask loyalty reconcile --tenant-id 1 [--client-id 42]   # Rebuild aggregates from the ledger
    flask loyalty retry-awards [--tenant-id 1] [--limit 50]  # Retry failed appointment awards
"""
from .loyalty import loyalty_cli


def init_app(app):
    """Register all CLI commands with the Flask app."""
    app.cli.add_command(loyalty_cli)
