"""The Plan: persisted, reproducible set of releases and repositories.

Layout of a plan directory::

    <plandir>/planfile                  project, version, repositories, releases
    <plandir>/manifest/<unique>.yml     rendered manifests per release
    <plandir>/charts/<unique>/<chart>   exported remote chart archives

A plan is *building* while the builder fills it, *persisted* once
``export()`` returns, and *imported* after ``import_()`` read it back.
Imported plans never need chart resolution.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from chartwave.errors import DeclarationError, DuplicateReleaseError, PlanExportError, PlanNotFoundError
from chartwave.fs import WritableFS
from chartwave.observability.logging import get_logger
from chartwave.release.config import ReleaseConfig
from chartwave.repo.config import RepositoryConfig

if TYPE_CHECKING:
    from chartwave.release.resolver import ChartResolver

_log = get_logger("plan")

PLANFILE = "planfile"
MANIFEST_DIR = "manifest"
CHARTS_DIR = "charts"


@dataclass
class PlanBody:
    """The serialised part of a plan."""

    project: str = ""
    version: str = ""
    repositories: list[RepositoryConfig] = field(default_factory=list)
    releases: list[ReleaseConfig] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "version": self.version,
            "repositories": [r.to_dict() for r in self.repositories],
            "releases": [r.to_dict() for r in self.releases],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanBody:
        return cls(
            project=str(data.get("project") or ""),
            version=str(data.get("version") or ""),
            repositories=[RepositoryConfig.from_dict(r) for r in data.get("repositories") or []],
            releases=[ReleaseConfig.from_dict(r) for r in data.get("releases") or []],
        )


def check_unique(releases: list[ReleaseConfig]) -> None:
    """Raise DuplicateReleaseError on the first repeated ``name@namespace``."""
    seen: set[str] = set()
    for rel in releases:
        if rel.unique_name in seen:
            raise DuplicateReleaseError(rel.unique_name)
        seen.add(rel.unique_name)


class Plan:
    """A plan bound to a plan directory."""

    def __init__(
        self,
        directory: str,
        body: PlanBody | None = None,
        manifests: dict[str, str] | None = None,
        resolvers: dict[str, ChartResolver] | None = None,
    ) -> None:
        self.directory = directory
        self.full_path = os.path.join(directory, PLANFILE)
        self.body = body or PlanBody()
        self.manifests: dict[str, str] = manifests or {}
        self._resolvers: dict[str, ChartResolver] = resolvers or {}

    @property
    def releases(self) -> list[ReleaseConfig]:
        return self.body.releases

    def find_release(self, unique_name: str) -> ReleaseConfig | None:
        for rel in self.body.releases:
            if rel.unique_name == unique_name:
                return rel
        return None

    def manifest(self, unique_name: str) -> str:
        return self.manifests.get(unique_name, "")

    def is_exist(self) -> bool:
        return os.path.isfile(self.full_path)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_(self) -> None:
        """Read the planfile and manifest bundle from the plan directory.

        Raises:
            PlanNotFoundError: no planfile.
            DeclarationError: the planfile is malformed.
        """
        if not self.is_exist():
            raise PlanNotFoundError(self.full_path)

        try:
            data = yaml.safe_load(Path(self.full_path).read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise DeclarationError(f"failed to parse planfile {self.full_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise DeclarationError(f"planfile {self.full_path} is not a mapping")

        self.body = PlanBody.from_dict(data)
        check_unique(self.body.releases)

        self.manifests = {}
        manifest_dir = Path(self.directory) / MANIFEST_DIR
        for rel in self.body.releases:
            path = manifest_dir / f"{rel.unique_name}.yml"
            if path.is_file():
                self.manifests[rel.unique_name] = path.read_text(encoding="utf-8")
        _log.debug("plan_imported", path=self.full_path, releases=len(self.body.releases))

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self) -> None:
        """Persist the plan.

        Everything is written into a staging directory first and swapped in
        with renames, so a failed export leaves any previous plan untouched.
        Exported remote charts are renamed to their copy under
        ``charts/<unique>/`` only once the swap succeeded; until then the
        in-memory releases keep their original chart names.

        Raises:
            ChartExportError, ChartLocateError: a remote chart could not be copied.
            PlanExportError: the plan directory could not be written or swapped in.
        """
        check_unique(self.body.releases)

        target = Path(self.directory)
        staging: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".plan-", dir=target.parent))
            renamed = self._write(WritableFS(staging))
            backup: Path | None = None
            if target.exists():
                backup = Path(tempfile.mkdtemp(prefix=".plan-old-", dir=target.parent))
                os.rmdir(backup)
                os.replace(target, backup)
            os.replace(staging, target)
            staging = None
            if backup is not None:
                shutil.rmtree(backup, ignore_errors=True)
        except OSError as exc:
            raise PlanExportError(self.directory, str(exc)) from exc
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        for rel in self.body.releases:
            if rel.unique_name in renamed:
                rel.set_chart_name(renamed[rel.unique_name])
        _log.info("plan_exported", path=self.full_path, releases=len(self.body.releases))

    def _write(self, fs: WritableFS) -> dict[str, str]:
        """Write the plan into *fs*; return the new chart name of each exported release."""
        renamed: dict[str, str] = {}
        for rel in self.body.releases:
            resolver = self._resolvers.get(rel.unique_name)
            if resolver is None:
                continue
            copied = resolver.export(fs, os.path.join(CHARTS_DIR, rel.unique_name))
            if copied is not None:
                renamed[rel.unique_name] = os.path.relpath(copied, fs.root)

        manifest_dir = fs.mkdir_all(MANIFEST_DIR)
        for unique_name, text in self.manifests.items():
            (manifest_dir / f"{unique_name}.yml").write_text(text, encoding="utf-8")

        body = self.body.to_dict()
        for data, rel in zip(body["releases"], self.body.releases):
            if rel.unique_name in renamed:
                data["chart"] = replace(rel.chart, name=renamed[rel.unique_name]).to_yaml_value()
        fs.join(PLANFILE).write_text(
            yaml.safe_dump(body, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        return renamed

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def summary(self) -> list[dict[str, Any]]:
        """One row per release, for logging or tabular display."""
        return [
            {
                "release": rel.unique_name,
                "chart": rel.chart.name,
                "version": rel.chart.version,
                "tags": ",".join(rel.tags),
            }
            for rel in self.body.releases
        ]
