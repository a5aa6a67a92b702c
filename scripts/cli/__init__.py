"""
BurnWise operator CLI.

Initialize the database, enter exchange rates, and print debt summaries,
per-debt reports, project reports and the dashboard from a terminal.

Entry point: python -m scripts.cli or the ``burnwise`` console script.
"""

from scripts.cli.main import main

__all__ = ["main"]
