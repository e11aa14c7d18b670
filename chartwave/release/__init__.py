"""Release model and chart resolution.

Exports:
    ChartReference -- scalar-or-mapping chart reference, decoded by YAML node kind.
    ReleaseConfig  -- one deployable chart instance, unique by name@namespace.
    ChartResolver  -- locate/load/check/update/export the chart of a release.
"""

from chartwave.release.chart import ChartReference
from chartwave.release.config import ReleaseConfig
from chartwave.release.resolver import ChartResolver

__all__ = ["ChartReference", "ChartResolver", "ReleaseConfig"]
