"""Diff engine: plan vs plan and plan vs live cluster.

Both modes walk the *new* plan's releases in declaration order and compare
each release's rendered manifest, resource by resource and field by field,
against the old side.  Plan-vs-plan also compares the release configuration.

A release present only in the old plan is logged as a warning and returned
as a ``ChangeRecord`` with ``removed=True``.  A rename shows up as one
removed and one added record; the two are never paired.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from chartwave.observability.logging import get_logger
from chartwave.plan.manifest import mask_secret, parse_manifest
from chartwave.plan.plan import CHARTS_DIR

if TYPE_CHECKING:
    from chartwave.plan.plan import Plan
    from chartwave.release.config import ReleaseConfig

_log = get_logger("plan.diff")

PathElem = str | int


class ChangeType(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceChangeType(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class FieldChange:
    """One changed leaf (or subtree) between two values."""

    path: tuple[PathElem, ...]
    type: ChangeType
    old: Any = None
    new: Any = None

    @property
    def path_str(self) -> str:
        return ".".join(str(p) for p in self.path) or "<root>"


@dataclass
class ResourceChange:
    """Change of one manifest resource, keyed ``Kind/namespace/name``."""

    resource: str
    type: ResourceChangeType
    field_changes: list[FieldChange] = field(default_factory=list)


@dataclass
class ChangeRecord:
    """Everything that changed for one release (by unique name)."""

    unique_name: str
    added: bool = False
    removed: bool = False
    field_changes: list[FieldChange] = field(default_factory=list)
    resource_changes: list[ResourceChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return self.added or self.removed or bool(self.field_changes) or bool(self.resource_changes)


class LiveManifestProvider(Protocol):
    """Returns the manifest currently deployed for a release, or None if it is not installed."""

    async def get_manifest(self, release: ReleaseConfig) -> str | None: ...


# ---------------------------------------------------------------------------
# Structural value diff
# ---------------------------------------------------------------------------


def diff_values(old: Any, new: Any, path: tuple[PathElem, ...] = ()) -> list[FieldChange]:
    """Recursively compare two plain values (dicts, lists, scalars).

    Dict keys are visited in sorted order and lists index by index, so the
    output is deterministic.  A type mismatch is reported as a single update.
    """
    if isinstance(old, dict) and isinstance(new, dict):
        changes: list[FieldChange] = []
        for key in sorted(set(old) | set(new), key=str):
            if key not in new:
                changes.append(FieldChange(path + (key,), ChangeType.DELETE, old=old[key]))
            elif key not in old:
                changes.append(FieldChange(path + (key,), ChangeType.CREATE, new=new[key]))
            else:
                changes.extend(diff_values(old[key], new[key], path + (key,)))
        return changes

    if isinstance(old, list) and isinstance(new, list):
        changes = []
        for i in range(max(len(old), len(new))):
            if i >= len(new):
                changes.append(FieldChange(path + (i,), ChangeType.DELETE, old=old[i]))
            elif i >= len(old):
                changes.append(FieldChange(path + (i,), ChangeType.CREATE, new=new[i]))
            else:
                changes.extend(diff_values(old[i], new[i], path + (i,)))
        return changes

    if old != new or type(old) is not type(new):
        return [FieldChange(path, ChangeType.UPDATE, old=old, new=new)]
    return []


def diff_plan_bodies(old: Plan, new: Plan) -> list[FieldChange]:
    """Raw structural diff of two planfile bodies."""
    return diff_values(old.body.to_dict(), new.body.to_dict())


# ---------------------------------------------------------------------------
# Manifest diff
# ---------------------------------------------------------------------------


def _index(text: str, namespace: str, show_secret: bool, source: str) -> dict[str, dict[str, Any]]:
    resources: dict[str, dict[str, Any]] = {}
    for res in parse_manifest(text, default_namespace=namespace, source=source):
        resources[res.key] = res.body if show_secret else mask_secret(res.body)
    return resources


def _resource_order(text: str, namespace: str, source: str) -> list[str]:
    return [r.key for r in parse_manifest(text, default_namespace=namespace, source=source)]


def diff_manifests(
    new_text: str,
    old_text: str,
    namespace: str = "",
    show_secret: bool = False,
    source: str = "",
) -> list[ResourceChange]:
    """Compare two rendered manifests resource by resource.

    New-side resources come first in document order, followed by resources
    only present on the old side, also in document order.  *source* names
    the release in parse errors.
    """
    new_res = _index(new_text, namespace, show_secret, source)
    old_res = _index(old_text, namespace, show_secret, source)

    changes: list[ResourceChange] = []
    for key in _resource_order(new_text, namespace, source):
        if key not in old_res:
            changes.append(ResourceChange(key, ResourceChangeType.ADDED, diff_values({}, new_res[key])))
            continue
        fields = diff_values(old_res[key], new_res[key])
        if fields:
            changes.append(ResourceChange(key, ResourceChangeType.MODIFIED, fields))

    for key in _resource_order(old_text, namespace, source):
        if key not in new_res:
            changes.append(ResourceChange(key, ResourceChangeType.REMOVED, diff_values(old_res[key], {})))
    return changes


def _release_changes(old: ReleaseConfig, new: ReleaseConfig) -> list[FieldChange]:
    old_data, new_data = old.to_dict(), new.to_dict()
    # exported plans point remote charts at their copy under charts/<unique>/,
    # so the chart name is only compared when neither side was exported
    exported_prefix = f"{CHARTS_DIR}/{old.unique_name}/"
    if any(r.chart.name.startswith(exported_prefix) for r in (old, new)):
        for data, rel in ((old_data, old), (new_data, new)):
            chart = rel.chart.to_yaml_value()
            chart = dict(chart) if isinstance(chart, dict) else {"name": chart}
            chart.pop("name")
            data["chart"] = chart
    return diff_values(old_data, new_data)


def _log_record(record: ChangeRecord) -> None:
    if not record.has_changes:
        _log.info("no_changes", release=record.unique_name)
        return
    _log.info(
        "release_changed",
        release=record.unique_name,
        added=record.added,
        config_changes=len(record.field_changes),
        resource_changes=[f"{c.type}:{c.resource}" for c in record.resource_changes],
    )


# ---------------------------------------------------------------------------
# Plan vs plan
# ---------------------------------------------------------------------------


def diff_plans(new: Plan, old: Plan, show_secret: bool = False) -> list[ChangeRecord]:
    """Compare a freshly built plan with a previously persisted one."""
    records: list[ChangeRecord] = []
    visited: set[str] = set()

    for rel in new.releases:
        uniq = rel.unique_name
        visited.add(uniq)
        old_rel = old.find_release(uniq)
        record = ChangeRecord(unique_name=uniq, added=old_rel is None)
        if old_rel is not None:
            record.field_changes = _release_changes(old_rel, rel)
        record.resource_changes = diff_manifests(
            new.manifest(uniq),
            old.manifest(uniq),
            namespace=rel.namespace,
            show_secret=show_secret,
            source=uniq,
        )
        _log_record(record)
        records.append(record)

    for rel in old.releases:
        uniq = rel.unique_name
        if uniq in visited:
            continue
        _log.warning(
            "release_not_affected_in_new",
            release=uniq,
            msg=f"{uniq} was found in previous planfile but not affected in new",
        )
        records.append(
            ChangeRecord(
                unique_name=uniq,
                removed=True,
                resource_changes=diff_manifests("", old.manifest(uniq), rel.namespace, show_secret, source=uniq),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Plan vs live
# ---------------------------------------------------------------------------


async def diff_live(plan: Plan, provider: LiveManifestProvider, show_secret: bool = False) -> list[ChangeRecord]:
    """Compare a plan's manifests with what is running in the cluster.

    Live manifests are fetched concurrently; records keep declaration order.
    """
    releases = plan.releases
    live = await asyncio.gather(*(provider.get_manifest(rel) for rel in releases))

    records: list[ChangeRecord] = []
    for rel, live_text in zip(releases, live):
        uniq = rel.unique_name
        record = ChangeRecord(
            unique_name=uniq,
            added=live_text is None,
            resource_changes=diff_manifests(
                plan.manifest(uniq),
                live_text or "",
                namespace=rel.namespace,
                show_secret=show_secret,
                source=uniq,
            ),
        )
        _log_record(record)
        records.append(record)
    return records
