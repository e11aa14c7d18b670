"""Cache layer for chartwave.

Submodules:
    charts -- Per-build ``(name, version) -> path`` cache of located charts.
"""

from chartwave.cache.charts import ChartCache

__all__ = ["ChartCache"]
