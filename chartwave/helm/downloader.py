"""Dependency download for local chart directories (``helm dependency update``)."""

from __future__ import annotations

import shutil
from pathlib import Path

from chartwave.helm.chart import CHARTS_DIR, ChartDependency, read_chart_metadata
from chartwave.helm.repository import ChartRepositoryClient
from chartwave.observability.logging import get_logger
from chartwave.repo.config import RepositoryConfig
from chartwave.repo.registry import RepositoryRegistry

_log = get_logger("helm.downloader")


class DependencyManager:
    """Vendors every dependency declared in Chart.yaml into ``charts/``.

    Repository forms understood:
        ``https://...``     -- chart repository URL (credentials from a registry entry with the same URL)
        ``@name``/``alias:name`` -- a registry entry by name
        ``file://<path>``   -- a chart directory relative to the parent chart, copied in
    """

    def __init__(
        self,
        registry: RepositoryRegistry,
        client: ChartRepositoryClient,
    ) -> None:
        self._registry = registry
        self._client = client

    def update(self, chart_path: str, skip_refresh: bool = False, verify: bool = False) -> list[str]:
        """Download dependencies of the chart at *chart_path*.

        Returns the paths written.  Raises on the first dependency that
        cannot be resolved.  Archives already in charts/ are not opened, so a
        stale or corrupt one is replaced rather than failing the update.
        """
        metadata = read_chart_metadata(Path(chart_path))
        charts_dir = Path(chart_path) / CHARTS_DIR
        written: list[str] = []
        refreshed: set[str] = set()

        for dep in metadata.dependencies:
            if dep.repository.startswith("file://"):
                written.append(self._copy_local(Path(chart_path), dep, charts_dir))
                continue

            repo = self._repository_for(dep)
            refresh = not skip_refresh and repo.url not in refreshed
            index = self._client.fetch_index(repo, refresh=refresh)
            refreshed.add(repo.url)

            entry = index.get(dep.name, dep.version)
            _remove_stale(charts_dir, dep.name, keep=f"{dep.name}-{entry.version}.tgz")
            path = self._client.download(repo, entry, dest_dir=charts_dir, require_digest=verify)
            written.append(str(path))

        _log.info("dependencies_updated", chart=metadata.name, count=len(written))
        return written

    def _repository_for(self, dep: ChartDependency) -> RepositoryConfig:
        repo = dep.repository
        if not repo:
            raise LookupError(f"dependency {dep.name!r} has no repository")
        if repo.startswith("oci://"):
            raise LookupError(f"OCI registries are not supported: {repo}")
        if repo.startswith("@"):
            return self._registry.find(repo[1:])
        if repo.startswith("alias:"):
            return self._registry.find(repo[len("alias:") :])
        known = self._registry.find_by_url(repo)
        return known if known is not None else RepositoryConfig(name="", url=repo)

    def _copy_local(self, parent: Path, dep: ChartDependency, charts_dir: Path) -> str:
        source = (parent / dep.repository[len("file://") :]).resolve()
        if not source.is_dir():
            raise LookupError(f"dependency {dep.name!r}: {source} is not a directory")
        target = charts_dir / dep.name
        if target.exists():
            shutil.rmtree(target)
        charts_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target)
        return str(target)


def _remove_stale(charts_dir: Path, name: str, keep: str) -> None:
    if not charts_dir.is_dir():
        return
    for archive in charts_dir.glob(f"{name}-*.tgz"):
        # "redis-" must not match "redis-cluster-1.0.0.tgz"
        if archive.name != keep and archive.name[len(name) + 1 :][:1].isdigit():
            _log.debug("stale_dependency_removed", path=str(archive))
            archive.unlink()
