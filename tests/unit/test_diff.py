"""Tests for the diff engine (plan vs plan, plan vs live) and manifest parsing."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from hypothesis import given
from hypothesis import strategies as st
from structlog.testing import capture_logs

from chartwave.errors import ErrorKind, ManifestParseError, is_kind
from chartwave.plan import Plan, PlanBody
from chartwave.plan.diff import (
    ChangeType,
    ResourceChangeType,
    diff_live,
    diff_manifests,
    diff_plans,
    diff_values,
)
from chartwave.plan.manifest import mask_secret, parse_manifest
from chartwave.release import ChartReference, ReleaseConfig

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_CONFIGMAP = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: {name}
data:
  color: {color}
"""

_SECRET = """\
apiVersion: v1
kind: Secret
metadata:
  name: creds
  namespace: web
stringData:
  password: {password}
"""


def _make_release(name: str, chart: str = "bitnami/nginx", namespace: str = "default", **kwargs: object) -> ReleaseConfig:
    return ReleaseConfig(name=name, chart=ChartReference(name=chart), namespace=namespace, **kwargs)  # type: ignore[arg-type]


def _make_plan(releases: list[ReleaseConfig], manifests: dict[str, str] | None = None) -> Plan:
    return Plan("/unused/", body=PlanBody(project="p", releases=releases), manifests=manifests or {})


_json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=5),
    lambda children: st.lists(children, max_size=3) | st.dictionaries(st.text(max_size=3), children, max_size=3),
    max_leaves=10,
)


# ---------------------------------------------------------------------------
# diff_values
# ---------------------------------------------------------------------------


class TestDiffValues:
    @given(_json_values)
    def test_identical_values_have_no_changes(self, value: object) -> None:
        assert diff_values(value, value) == []

    def test_nested_changes_sorted_by_key(self) -> None:
        old = {"b": 1, "a": {"x": [1, 2]}, "gone": True}
        new = {"b": 2, "a": {"x": [1, 3, 4]}, "new": "y"}
        changes = [(c.path_str, c.type) for c in diff_values(old, new)]
        assert changes == [
            ("a.x.1", ChangeType.UPDATE),
            ("a.x.2", ChangeType.CREATE),
            ("b", ChangeType.UPDATE),
            ("gone", ChangeType.DELETE),
            ("new", ChangeType.CREATE),
        ]

    def test_type_mismatch_is_single_update(self) -> None:
        [change] = diff_values({"a": {"b": 1}}, {"a": [1]})
        assert change.path == ("a",)
        assert change.type == ChangeType.UPDATE

    def test_bool_and_int_are_different(self) -> None:
        assert diff_values(1, True) != []


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------


class TestManifest:
    def test_parse_skips_empty_documents(self) -> None:
        text = "---\n" + _CONFIGMAP.format(name="a", color="red") + "---\n# comment only\n---\n"
        [res] = parse_manifest(text, default_namespace="web")
        assert res.key == "ConfigMap/web/a"

    def test_invalid_yaml_is_a_validation_error(self) -> None:
        with pytest.raises(ManifestParseError, match="web@default") as exc_info:
            parse_manifest("kind: ConfigMap\nmetadata: [unclosed\n", source="web@default")
        assert is_kind(exc_info.value, ErrorKind.VALIDATION)

    def test_mask_secret_hides_values_but_keeps_changes_visible(self) -> None:
        body = {"kind": "Secret", "stringData": {"password": "hunter2"}}
        masked = mask_secret(body)
        assert "hunter2" not in str(masked)
        assert masked != mask_secret({"kind": "Secret", "stringData": {"password": "hunter3"}})
        assert body["stringData"]["password"] == "hunter2"

    def test_mask_ignores_other_kinds(self) -> None:
        body = {"kind": "ConfigMap", "data": {"a": "b"}}
        assert mask_secret(body) is body

    def test_diff_manifests_added_modified_removed(self) -> None:
        old = _CONFIGMAP.format(name="a", color="red") + "---\n" + _CONFIGMAP.format(name="gone", color="x")
        new = _CONFIGMAP.format(name="a", color="blue") + "---\n" + _CONFIGMAP.format(name="b", color="x")

        changes = diff_manifests(new, old, namespace="default")

        assert [(c.resource, c.type) for c in changes] == [
            ("ConfigMap/default/a", ResourceChangeType.MODIFIED),
            ("ConfigMap/default/b", ResourceChangeType.ADDED),
            ("ConfigMap/default/gone", ResourceChangeType.REMOVED),
        ]
        assert changes[0].field_changes[0].path_str == "data.color"

    def test_secret_values_masked_unless_shown(self) -> None:
        old = _SECRET.format(password="old-pass")
        new = _SECRET.format(password="new-pass")

        [hidden] = diff_manifests(new, old)
        [shown] = diff_manifests(new, old, show_secret=True)

        assert "new-pass" not in repr(hidden)
        assert shown.field_changes[0].new == "new-pass"


# ---------------------------------------------------------------------------
# Plan vs plan
# ---------------------------------------------------------------------------


class TestDiffPlans:
    def test_identical_plans_have_no_changes(self) -> None:
        manifests = {"a@default": _CONFIGMAP.format(name="a", color="red")}
        plan = _make_plan([_make_release("a"), _make_release("b")], manifests)
        other = _make_plan([_make_release("a"), _make_release("b")], dict(manifests))

        with capture_logs() as logs:
            records = diff_plans(plan, other)

        assert [r.has_changes for r in records] == [False, False]
        assert [e["event"] for e in logs] == ["no_changes", "no_changes"]

    def test_corrupt_stored_manifest_names_the_release(self) -> None:
        new = _make_plan([_make_release("a")], {"a@default": _CONFIGMAP.format(name="a", color="red")})
        old = _make_plan([_make_release("a")], {"a@default": "data: {broken\n"})

        with pytest.raises(ManifestParseError, match="a@default"):
            diff_plans(new, old)

    def test_release_only_in_old_plan_is_reported(self) -> None:
        old = _make_plan([_make_release("a"), _make_release("b")])
        new = _make_plan([_make_release("a"), _make_release("c")])

        with capture_logs() as logs:
            records = diff_plans(new, old)

        assert [(r.unique_name, r.added, r.removed) for r in records] == [
            ("a@default", False, False),
            ("c@default", True, False),
            ("b@default", False, True),
        ]
        [warning] = [e for e in logs if e["log_level"] == "warning"]
        assert warning["release"] == "b@default"
        assert "found in previous planfile but not affected in new" in warning["msg"]

    def test_rename_is_remove_plus_add(self) -> None:
        old = _make_plan([_make_release("web")])
        new = _make_plan([_make_release("frontend")])
        records = diff_plans(new, old)
        assert {(r.unique_name, r.added, r.removed) for r in records} == {
            ("frontend@default", True, False),
            ("web@default", False, True),
        }

    def test_release_config_change(self) -> None:
        old = _make_plan([_make_release("a", tags=["x"])])
        new = _make_plan([_make_release("a", tags=["x", "y"], wait=True)])
        [record] = diff_plans(new, old)
        assert {c.path_str for c in record.field_changes} == {"tags.1", "wait"}

    def test_exported_chart_name_ignored(self) -> None:
        old = _make_plan([_make_release("a", chart="charts/a@default/nginx-1.0.0.tgz")])
        new = _make_plan([_make_release("a", chart="bitnami/nginx")])
        [record] = diff_plans(new, old)
        assert not record.has_changes

    def test_removed_release_carries_its_resources(self) -> None:
        old = _make_plan([_make_release("b")], {"b@default": _CONFIGMAP.format(name="b", color="x")})
        new = _make_plan([])
        [record] = diff_plans(new, old)
        assert record.removed
        assert [c.type for c in record.resource_changes] == [ResourceChangeType.REMOVED]


# ---------------------------------------------------------------------------
# Plan vs live
# ---------------------------------------------------------------------------


class TestDiffLive:
    async def test_compares_against_live_manifests(self) -> None:
        plan = _make_plan(
            [_make_release("a"), _make_release("b"), _make_release("c")],
            {
                "a@default": _CONFIGMAP.format(name="a", color="red"),
                "b@default": _CONFIGMAP.format(name="b", color="blue"),
                "c@default": _CONFIGMAP.format(name="c", color="x"),
            },
        )
        live = {
            "a": _CONFIGMAP.format(name="a", color="red"),
            "b": _CONFIGMAP.format(name="b", color="green"),
            "c": None,
        }
        provider = AsyncMock()
        provider.get_manifest.side_effect = lambda rel: live[rel.name]

        records = await diff_live(plan, provider)

        assert [r.unique_name for r in records] == ["a@default", "b@default", "c@default"]
        assert not records[0].has_changes
        assert records[1].resource_changes[0].type == ResourceChangeType.MODIFIED
        assert records[2].added
        assert provider.get_manifest.await_count == 3

    async def test_empty_plan(self) -> None:
        provider = AsyncMock()
        assert await diff_live(_make_plan([]), provider) == []
        provider.get_manifest.assert_not_awaited()
