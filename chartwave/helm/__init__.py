"""Helm-compatible chart handling.

Submodules:
    chart      -- Chart.yaml metadata and loading from directories or archives.
    repository -- HTTP chart repository index and archive download.
    locator    -- Chart name -> on-disk path.
    downloader -- Dependency vendoring for local charts.
    template   -- Manifest rendering with `helm template`.
    semver     -- Version constraint matching.
"""

from chartwave.helm.chart import Chart, ChartDependency, ChartLoader, ChartMetadata
from chartwave.helm.downloader import DependencyManager
from chartwave.helm.locator import ChartLocator
from chartwave.helm.repository import ChartRepositoryClient, ChartVersion, RepositoryIndex
from chartwave.helm.template import HelmTemplateRenderer

__all__ = [
    "Chart",
    "ChartDependency",
    "ChartLoader",
    "ChartLocator",
    "ChartMetadata",
    "ChartRepositoryClient",
    "ChartVersion",
    "DependencyManager",
    "HelmTemplateRenderer",
    "RepositoryIndex",
]
