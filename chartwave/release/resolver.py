"""Chart resolution for a single release.

Turns a release's ``ChartReference`` into a concrete chart on disk, reusing
the per-build ``ChartCache`` so that releases sharing ``(name, version)``
resolve the chart once.  All blocking work (downloads, dependency updates)
happens outside the cache lock.

Collaborators are injected as protocols so the resolver can be exercised
without a network:
    ChartLocatorProtocol       -- name -> path (local join or remote download)
    ChartLoaderProtocol        -- path -> Chart
    DependencyUpdaterProtocol  -- vendors a local chart's dependencies
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Protocol

from chartwave.errors import (
    ChartDependencyError,
    ChartExportError,
    ChartLoadError,
    ChartLocateError,
    DependencyUpdateError,
)
from chartwave.observability.logging import get_logger
from chartwave.release.chart import ChartReference

if TYPE_CHECKING:
    import structlog

    from chartwave.cache.charts import ChartCache
    from chartwave.fs import CurrentPathFS, WritableFS
    from chartwave.helm.chart import Chart
    from chartwave.release.config import ReleaseConfig

_INSTALLABLE_TYPES = ("", "application")


class ChartLocatorProtocol(Protocol):
    def locate(self, name: str, ref: ChartReference) -> str: ...


class ChartLoaderProtocol(Protocol):
    def load(self, path: str) -> Chart: ...


class DependencyUpdaterProtocol(Protocol):
    def update(self, chart_path: str, skip_refresh: bool = False, verify: bool = False) -> list[str]: ...


class ChartResolver:
    """Resolves, loads, checks and exports the chart of one release."""

    def __init__(
        self,
        release: ReleaseConfig,
        base_fs: CurrentPathFS,
        cache: ChartCache,
        locator: ChartLocatorProtocol,
        loader: ChartLoaderProtocol,
        dependency_updater: DependencyUpdaterProtocol | None = None,
    ) -> None:
        self._release = release
        self._base_fs = base_fs
        self._cache = cache
        self._locator = locator
        self._loader = loader
        self._dependency_updater = dependency_updater
        self._log: structlog.stdlib.BoundLogger = get_logger("release.resolver").bind(
            release=release.unique_name
        )

    @property
    def chart(self) -> ChartReference:
        return self._release.chart

    def is_remote(self) -> bool:
        """A chart is remote unless its name is a path under the base directory."""
        return not self._base_fs.exists(os.path.normpath(self.chart.name))

    def is_local_archive(self) -> bool:
        """A local chart is an archive unless it is a directory."""
        return not self._base_fs.is_dir(self.chart.name)

    def locate_with_cache(self) -> str:
        """Return the chart path, resolving it only on a cache miss.

        Raises:
            ChartLocateError: resolution failed for any reason; the cause is chained.
        """
        ref = self.chart
        cached = self._cache.get(ref.name, ref.version)
        if cached is not None:
            self._log.info("chart_cache_hit", chart=ref.name, version=ref.version, path=cached)
            return cached

        name = ref.name
        if not self.is_remote():
            name = str(self._base_fs.join(ref.name))

        try:
            path = self._locator.locate(name, ref)
        except Exception as exc:
            raise ChartLocateError(name, str(exc)) from exc

        self._cache.put(ref.name, ref.version, path)
        self._log.debug("chart_located", chart=ref.name, version=ref.version, path=path)
        return path

    def load(self) -> Chart:
        """Locate and load the chart, then check its dependencies.

        Raises:
            ChartLocateError, ChartLoadError, ChartDependencyError
        """
        path = self.locate_with_cache()
        try:
            chart = self._loader.load(path)
        except Exception as exc:
            raise ChartLoadError(self.chart.name, str(exc)) from exc

        self._check(chart)
        return chart

    def _check(self, chart: Chart) -> None:
        if chart.metadata.dependencies:
            missing = chart.missing_dependencies()
            if missing:
                raise ChartDependencyError(chart.name, missing)

        if chart.metadata.type not in _INSTALLABLE_TYPES:
            self._log.warning("chart_not_installable", chart=chart.name, type=chart.metadata.type)

        if chart.metadata.deprecated:
            self._log.warning("chart_deprecated", chart=chart.name)

    def local_chart_dir(self) -> str | None:
        """Normalised path of a local unpacked chart; None for remote charts and archives."""
        if self.is_remote() or self.is_local_archive():
            return None
        return os.path.normpath(self._base_fs.join(self.chart.name))

    def update_dependencies(self) -> None:
        """Vendor dependencies of a local, unpacked chart.

        Raises:
            DependencyUpdateError: the dependency manager failed.
        """
        if self.is_remote():
            self._log.info("skipping_dependency_update", reason="remote chart")
            return

        if self.is_local_archive():
            self._log.debug("skipping_dependency_update", reason="downloaded chart")
            return

        if self.chart.skip_dependency_update:
            self._log.info("skipping_dependency_update", reason="forced for local chart")
            return

        if self._dependency_updater is None:
            self._log.debug("skipping_dependency_update", reason="no dependency manager")
            return

        try:
            self._dependency_updater.update(
                os.path.normpath(self._base_fs.join(self.chart.name)),
                skip_refresh=self.chart.skip_refresh,
                verify=self.chart.verify,
            )
        except Exception as exc:
            raise DependencyUpdateError(self.chart.name, str(exc)) from exc

    def export(self, tmp_fs: WritableFS, dest_dir: str) -> str | None:
        """Copy a remote chart's archive into ``tmp_fs/dest_dir``.

        Returns the copied path, or None for local charts (nothing to do).

        Raises:
            ChartExportError: directory creation or copy failed.
            ChartLocateError: the chart could not be located.
        """
        if not self.is_remote():
            self._log.info("skipping_chart_export", reason="chart is local")
            return None

        try:
            tmp_fs.mkdir_all(dest_dir, 0o750)
        except OSError as exc:
            raise ChartExportError(self.chart.name, f"failed to create directory: {exc}") from exc

        path = self.locate_with_cache()
        try:
            target = tmp_fs.copy_file(path, dest_dir)
        except OSError as exc:
            raise ChartExportError(self.chart.name, str(exc)) from exc
        return str(target)
