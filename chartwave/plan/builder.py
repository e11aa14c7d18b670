"""Plan builder.

Build pipeline:
    render declaration -> decode -> normalise tags -> filter releases
    -> per release (concurrently): locate chart -> update dependencies
    -> per release (concurrently): load + check chart -> render manifest
    -> reject duplicate releases -> Plan

Blocking work runs in worker threads via ``asyncio.to_thread``.  Release
pipelines share the per-build ``ChartCache`` and, for local chart
directories, one lock per directory: dependencies of a directory used by
several releases are vendored once, before any of them loads it.
Any failure propagates and no plan is returned, so nothing partial can be
exported.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from chartwave.cache.charts import ChartCache
from chartwave.errors import ManifestRenderError
from chartwave.fs import CurrentPathFS
from chartwave.helm.chart import ChartLoader
from chartwave.helm.downloader import DependencyManager
from chartwave.helm.locator import ChartLocator
from chartwave.observability.logging import get_logger
from chartwave.plan.declaration import CopyTemplater, Templater, decode_declaration
from chartwave.plan.plan import Plan, PlanBody, check_unique
from chartwave.plan.tags import filter_releases, normalize_tags
from chartwave.release.resolver import (
    ChartLoaderProtocol,
    ChartLocatorProtocol,
    ChartResolver,
    DependencyUpdaterProtocol,
)
from chartwave.repo.registry import RepositoryRegistry

if TYPE_CHECKING:
    from chartwave.helm.repository import ChartRepositoryClient
    from chartwave.release.config import ReleaseConfig
    from chartwave.repo.config import RepositoryConfig

_log = get_logger("plan.builder")


class ManifestRenderer(Protocol):
    """Renders the Kubernetes manifest of a release from its located chart."""

    def render(self, release: ReleaseConfig, chart_path: str) -> str: ...


class PlanBuilder:
    """Builds a Plan from a declaration file.

    Args:
        plandir:            Directory the plan will be exported to.
        client:             Chart repository client used by the default locator
                            and dependency manager.
        helm_repositories:  Repositories known to helm; declaration entries
                            take precedence on name clashes.
        locator, loader, dependency_updater:
                            Overrides for the chart resolution collaborators.
        renderer:           Optional manifest renderer; without one, plans carry
                            no manifests.
    """

    def __init__(
        self,
        plandir: str,
        client: ChartRepositoryClient | None = None,
        helm_repositories: Iterable[RepositoryConfig] = (),
        locator: ChartLocatorProtocol | None = None,
        loader: ChartLoaderProtocol | None = None,
        dependency_updater: DependencyUpdaterProtocol | None = None,
        renderer: ManifestRenderer | None = None,
    ) -> None:
        if client is None and locator is None:
            raise ValueError("PlanBuilder needs a repository client or a chart locator")
        self._plandir = plandir
        self._client = client
        self._helm_repositories = list(helm_repositories)
        self._locator = locator
        self._loader = loader or ChartLoader()
        self._dependency_updater = dependency_updater
        self._renderer = renderer

    async def build(
        self,
        source: str,
        tags: Iterable[str] = (),
        match_all: bool = False,
        templater: Templater | None = None,
    ) -> Plan:
        """Build a plan from the declaration at *source*.

        Raises:
            ChartwaveError subclasses for every fatal condition (see chartwave.errors).
        """
        templater = templater or CopyTemplater()
        text = await asyncio.to_thread(templater.render, source)
        decl = decode_declaration(text)

        normalized = normalize_tags(tags)
        releases = filter_releases(decl.releases, normalized, match_all)
        _log.info(
            "releases_filtered",
            tags=normalized,
            match_all=match_all,
            declared=len(decl.releases),
            selected=len(releases),
        )

        registry = self._registry_for(decl.repositories)
        locator = self._locator or ChartLocator(registry, self._client)  # type: ignore[arg-type]
        updater = self._dependency_updater
        if updater is None and self._client is not None:
            updater = DependencyManager(registry, self._client)  # type: ignore[arg-type]

        cache = ChartCache()
        base_fs = CurrentPathFS(Path(source).resolve().parent)
        resolvers = [
            ChartResolver(rel, base_fs, cache, locator, self._loader, updater) for rel in releases
        ]

        updates = _DependencyUpdates()
        chart_paths = await asyncio.gather(*(self._prepare(res, updates) for res in resolvers))
        manifests = await asyncio.gather(
            *(self._render(rel, res, path) for rel, res, path in zip(releases, resolvers, chart_paths))
        )
        check_unique(releases)

        plan = Plan(
            self._plandir,
            body=PlanBody(
                project=decl.project,
                version=decl.version,
                repositories=list(decl.repositories),
                releases=releases,
            ),
            manifests={rel.unique_name: text for rel, text in zip(releases, manifests) if text},
            resolvers={rel.unique_name: res for rel, res in zip(releases, resolvers)},
        )
        _log.info("plan_built", project=decl.project, releases=len(releases), charts_cached=len(cache))
        return plan

    def _registry_for(self, declared: list[RepositoryConfig]) -> RepositoryRegistry:
        registry = RepositoryRegistry.from_configs(declared)
        for cfg in self._helm_repositories:
            if cfg.name not in registry:
                registry.add(cfg)
        return registry

    async def _prepare(self, resolver: ChartResolver, updates: _DependencyUpdates) -> str:
        chart_path = await asyncio.to_thread(resolver.locate_with_cache)
        await updates.run(resolver)
        return chart_path

    async def _render(self, release: ReleaseConfig, resolver: ChartResolver, chart_path: str) -> str:
        log = _log.bind(release=release.unique_name)
        chart = await asyncio.to_thread(resolver.load)
        log.debug("chart_ready", chart=chart.name, version=chart.metadata.version, path=chart_path)

        if self._renderer is None:
            return ""
        try:
            return await asyncio.to_thread(self._renderer.render, release, chart_path)
        except Exception as exc:
            raise ManifestRenderError(release.unique_name, str(exc)) from exc


class _DependencyUpdates:
    """Runs ``update_dependencies`` at most once per local chart directory."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._done: set[str] = set()

    async def run(self, resolver: ChartResolver) -> None:
        chart_dir = resolver.local_chart_dir()
        if chart_dir is None or resolver.chart.skip_dependency_update:
            # nothing is written; the resolver logs why it skipped
            await asyncio.to_thread(resolver.update_dependencies)
            return

        async with self._locks[chart_dir]:
            if chart_dir in self._done:
                _log.debug("dependencies_already_updated", path=chart_dir)
                return
            await asyncio.to_thread(resolver.update_dependencies)
            self._done.add(chart_dir)
