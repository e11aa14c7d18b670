"""Entry point for `python -m chartwave`.

Usage:
    python -m chartwave build --tags frontend
    python -m chartwave diff plan
"""

from __future__ import annotations

from chartwave.cli import cli

cli()
