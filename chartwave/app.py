"""Application actions for chartwave.

Wires the components for one command in dependency order:
    repository client -> plan builder -> diff -> export
Configuration and logging are set up by the CLI before an action runs.

BuildAction  -- build a plan, diff it (local or live), export it.
DiffAction   -- diff an existing plan against the previous one or the cluster.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from chartwave.helm.repository import ChartRepositoryClient
from chartwave.helm.template import HelmTemplateRenderer
from chartwave.kube.client import load_kube_config
from chartwave.kube.live import HelmSecretManifestProvider
from chartwave.models.config import ChartwaveConfig, DiffMode
from chartwave.observability.logging import get_logger
from chartwave.plan.builder import ManifestRenderer, PlanBuilder
from chartwave.plan.declaration import TEMPLATERS, Templater
from chartwave.plan.diff import ChangeRecord, LiveManifestProvider, diff_live, diff_plans
from chartwave.plan.plan import Plan
from chartwave.repo.registry import load_helm_repositories

if TYPE_CHECKING:
    import structlog

_log = get_logger("app")


@dataclass
class BuildResult:
    """What a build produced."""

    plan: Plan
    changes: list[ChangeRecord] = field(default_factory=list)


class BuildAction:
    """Build -> diff -> export, as run by ``chartwave build``.

    Collaborators default to the real implementations and can be replaced
    (tests inject fakes).
    """

    def __init__(
        self,
        config: ChartwaveConfig,
        templater: Templater | None = None,
        builder: PlanBuilder | None = None,
        live_provider: LiveManifestProvider | None = None,
        renderer: ManifestRenderer | None = None,
    ) -> None:
        self.config = config
        self._templater = templater or TEMPLATERS["copy"]()
        self._builder = builder
        self._live_provider = live_provider
        self._renderer = renderer
        self._log: structlog.stdlib.BoundLogger = _log.bind(plandir=config.build.plandir)

    def _make_builder(self) -> PlanBuilder:
        helm = self.config.helm
        renderer = self._renderer
        if renderer is None:
            default = HelmTemplateRenderer(base_dir=os.path.dirname(self.config.build.yml) or ".")
            if default.available():
                renderer = default
            else:
                self._log.warning("helm_not_found", hint="manifests will not be rendered")
        return PlanBuilder(
            self.config.build.plandir,
            client=ChartRepositoryClient(helm.chart_cache_dir, timeout=helm.http_timeout),
            helm_repositories=load_helm_repositories(helm.repository_config),
            renderer=renderer,
        )

    async def run(self) -> BuildResult:
        build_cfg = self.config.build
        builder = self._builder or self._make_builder()

        plan = await builder.build(
            build_cfg.yml,
            tags=build_cfg.tags,
            match_all=build_cfg.match_all_tags,
            templater=self._templater,
        )
        for row in plan.summary():
            self._log.info("planned_release", **row)

        changes = await self._diff(plan)

        plan.export()
        self._log.info("planfile_ready", planfile=plan.full_path)
        return BuildResult(plan=plan, changes=changes)

    async def _diff(self, plan: Plan) -> list[ChangeRecord]:
        mode = self.config.diff.mode
        show_secret = self.config.diff.show_secret

        if mode == DiffMode.LOCAL:
            old = Plan(self.config.build.plandir)
            if not old.is_exist():
                self._log.info("no_previous_plan")
                return []
            self._log.info("diff_with_previous_local_plan")
            old.import_()
            return diff_plans(plan, old, show_secret=show_secret)

        if mode == DiffMode.LIVE:
            self._log.info("diff_with_live_cluster")
            provider = self._live_provider
            if provider is None:
                await load_kube_config(self.config.kube.context)
                provider = HelmSecretManifestProvider()
            return await diff_live(plan, provider, show_secret=show_secret)

        self._log.info("diff_skipped", mode=str(mode))
        return []


class DiffAction:
    """Diff the persisted plan against its predecessor or the cluster."""

    def __init__(self, config: ChartwaveConfig, live_provider: LiveManifestProvider | None = None) -> None:
        self.config = config
        self._live_provider = live_provider

    async def against_plan(self, other_plandir: str) -> list[ChangeRecord]:
        new = Plan(self.config.build.plandir)
        new.import_()
        old = Plan(other_plandir)
        old.import_()
        return diff_plans(new, old, show_secret=self.config.diff.show_secret)

    async def against_live(self) -> list[ChangeRecord]:
        plan = Plan(self.config.build.plandir)
        plan.import_()
        provider = self._live_provider
        if provider is None:
            await load_kube_config(self.config.kube.context)
            provider = HelmSecretManifestProvider()
        return await diff_live(plan, provider, show_secret=self.config.diff.show_secret)
