"""chartwave command-line interface.

The ``cli`` click group backs both the ``chartwave`` console script and
``python -m chartwave``.
"""

from chartwave.cli.main import cli

__all__ = ["cli"]
