"""Tests for ChartCache and ChartResolver.

Collaborators (locator, loader, dependency updater) are fakes; the
filesystem is a pytest ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from chartwave.cache import ChartCache
from chartwave.errors import (
    ChartDependencyError,
    ChartExportError,
    ChartLoadError,
    ChartLocateError,
    DependencyUpdateError,
    ErrorKind,
    is_kind,
)
from chartwave.fs import CurrentPathFS, WritableFS
from chartwave.helm.chart import Chart, ChartDependency, ChartMetadata
from chartwave.release import ChartReference, ChartResolver, ReleaseConfig

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class _CountingLocator:
    def __init__(self, path: str = "/cache/x-1.0.tgz", error: Exception | None = None) -> None:
        self.path = path
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def locate(self, name: str, ref: ChartReference) -> str:
        self.calls.append((name, ref.version))
        if self.error is not None:
            raise self.error
        return self.path


class _StaticLoader:
    def __init__(self, chart: Chart | None = None, error: Exception | None = None) -> None:
        self.chart = chart
        self.error = error

    def load(self, path: str) -> Chart:
        if self.error is not None:
            raise self.error
        assert self.chart is not None
        return self.chart


def _make_chart(
    name: str = "x",
    deps: list[str] | None = None,
    subcharts: list[str] | None = None,
    chart_type: str = "",
    deprecated: bool = False,
) -> Chart:
    return Chart(
        metadata=ChartMetadata(
            name=name,
            version="1.0.0",
            type=chart_type,
            deprecated=deprecated,
            dependencies=[ChartDependency(name=d) for d in deps or []],
        ),
        path=f"/cache/{name}",
        subcharts=subcharts or [],
    )


def _make_release(chart: str = "repo/x", version: str = "1.0", **chart_opts: object) -> ReleaseConfig:
    return ReleaseConfig(name="app", chart=ChartReference(name=chart, version=version, **chart_opts))  # type: ignore[arg-type]


def _make_resolver(
    base: Path,
    release: ReleaseConfig | None = None,
    cache: ChartCache | None = None,
    locator: _CountingLocator | None = None,
    loader: _StaticLoader | None = None,
    updater: MagicMock | None = None,
) -> ChartResolver:
    return ChartResolver(
        release or _make_release(),
        CurrentPathFS(base),
        cache if cache is not None else ChartCache(),
        locator or _CountingLocator(),
        loader or _StaticLoader(_make_chart()),
        updater,
    )


# ---------------------------------------------------------------------------
# ChartCache
# ---------------------------------------------------------------------------


class TestChartCache:
    def test_miss_then_hit(self) -> None:
        cache = ChartCache()
        assert cache.get("x", "1.0") is None
        cache.put("x", "1.0", "/p")
        assert cache.get("x", "1.0") == "/p"
        assert (cache.hits, cache.misses) == (1, 1)

    def test_version_is_part_of_key(self) -> None:
        cache = ChartCache()
        cache.put("x", "1.0", "/p1")
        assert cache.get("x", "2.0") is None
        assert ("x", "1.0") in cache
        assert len(cache) == 1

    def test_snapshot_is_a_copy(self) -> None:
        cache = ChartCache()
        cache.put("x", "1.0", "/p")
        snap = cache.snapshot()
        snap[("y", "1")] = "/q"
        assert len(cache) == 1


# ---------------------------------------------------------------------------
# Locate
# ---------------------------------------------------------------------------


class TestLocateWithCache:
    def test_same_chart_resolved_once(self, tmp_path: Path) -> None:
        """Two releases with the same (name, version) share one resolution."""
        cache = ChartCache()
        locator = _CountingLocator()
        first = _make_resolver(tmp_path, cache=cache, locator=locator)
        second = _make_resolver(tmp_path, release=_make_release(), cache=cache, locator=locator)

        assert first.locate_with_cache() == "/cache/x-1.0.tgz"
        with capture_logs() as logs:
            assert second.locate_with_cache() == "/cache/x-1.0.tgz"

        assert len(locator.calls) == 1
        assert any(e["event"] == "chart_cache_hit" for e in logs)

    def test_different_version_resolves_again(self, tmp_path: Path) -> None:
        cache = ChartCache()
        locator = _CountingLocator()
        _make_resolver(tmp_path, cache=cache, locator=locator).locate_with_cache()
        _make_resolver(tmp_path, release=_make_release(version="2.0"), cache=cache, locator=locator).locate_with_cache()
        assert locator.calls == [("repo/x", "1.0"), ("repo/x", "2.0")]

    def test_local_chart_joined_with_base(self, tmp_path: Path) -> None:
        (tmp_path / "charts" / "app").mkdir(parents=True)
        locator = _CountingLocator(path=str(tmp_path / "charts" / "app"))
        resolver = _make_resolver(tmp_path, release=_make_release(chart="charts/app"), locator=locator)

        assert not resolver.is_remote()
        resolver.locate_with_cache()
        assert locator.calls[0][0] == str(tmp_path / "charts" / "app")

    def test_locator_failure_wrapped(self, tmp_path: Path) -> None:
        resolver = _make_resolver(tmp_path, locator=_CountingLocator(error=LookupError("no such chart")))
        with pytest.raises(ChartLocateError) as exc_info:
            resolver.locate_with_cache()
        assert str(exc_info.value).startswith("failed to locate chart repo/x")
        assert isinstance(exc_info.value.__cause__, LookupError)
        assert is_kind(exc_info.value, ErrorKind.RESOLUTION)

    def test_failure_is_not_cached(self, tmp_path: Path) -> None:
        cache = ChartCache()
        resolver = _make_resolver(tmp_path, cache=cache, locator=_CountingLocator(error=LookupError("down")))
        with pytest.raises(ChartLocateError):
            resolver.locate_with_cache()
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# Load + check
# ---------------------------------------------------------------------------


class TestLoad:
    def test_load_returns_chart(self, tmp_path: Path) -> None:
        chart = _make_chart(deps=["redis"], subcharts=["redis"])
        assert _make_resolver(tmp_path, loader=_StaticLoader(chart)).load() is chart

    def test_missing_dependency(self, tmp_path: Path) -> None:
        chart = _make_chart(deps=["redis", "postgresql"], subcharts=["redis"])
        with pytest.raises(ChartDependencyError) as exc_info:
            _make_resolver(tmp_path, loader=_StaticLoader(chart)).load()
        assert exc_info.value.missing == ["postgresql"]
        assert "missing in charts/ directory" in str(exc_info.value)
        assert is_kind(exc_info.value, ErrorKind.DEPENDENCY)

    def test_loader_failure_wrapped(self, tmp_path: Path) -> None:
        resolver = _make_resolver(tmp_path, loader=_StaticLoader(error=ValueError("Chart.yaml has no name")))
        with pytest.raises(ChartLoadError) as exc_info:
            resolver.load()
        assert is_kind(exc_info.value, ErrorKind.LOAD)

    def test_library_chart_warns(self, tmp_path: Path) -> None:
        with capture_logs() as logs:
            _make_resolver(tmp_path, loader=_StaticLoader(_make_chart(chart_type="library"))).load()
        warnings = [e for e in logs if e["log_level"] == "warning"]
        assert [e["event"] for e in warnings] == ["chart_not_installable"]

    def test_deprecated_chart_warns(self, tmp_path: Path) -> None:
        with capture_logs() as logs:
            _make_resolver(tmp_path, loader=_StaticLoader(_make_chart(deprecated=True))).load()
        assert any(e["event"] == "chart_deprecated" and e["log_level"] == "warning" for e in logs)


# ---------------------------------------------------------------------------
# Dependency update
# ---------------------------------------------------------------------------


class TestUpdateDependencies:
    def test_remote_chart_skipped(self, tmp_path: Path) -> None:
        updater = MagicMock()
        _make_resolver(tmp_path, updater=updater).update_dependencies()
        updater.update.assert_not_called()

    def test_local_archive_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "app-1.0.0.tgz").write_bytes(b"")
        updater = MagicMock()
        resolver = _make_resolver(tmp_path, release=_make_release(chart="app-1.0.0.tgz"), updater=updater)
        assert resolver.is_local_archive()
        resolver.update_dependencies()
        updater.update.assert_not_called()

    def test_forced_skip(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        updater = MagicMock()
        release = _make_release(chart="app", skip_dependency_update=True)
        _make_resolver(tmp_path, release=release, updater=updater).update_dependencies()
        updater.update.assert_not_called()

    def test_local_directory_updated(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        updater = MagicMock()
        release = _make_release(chart="./app", skip_refresh=True, verify=True)
        _make_resolver(tmp_path, release=release, updater=updater).update_dependencies()
        updater.update.assert_called_once_with(str(tmp_path / "app"), skip_refresh=True, verify=True)

    def test_local_chart_dir(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        (tmp_path / "app-1.0.0.tgz").write_bytes(b"")
        assert _make_resolver(tmp_path, release=_make_release(chart="./app/")).local_chart_dir() == str(tmp_path / "app")
        assert _make_resolver(tmp_path, release=_make_release(chart="app-1.0.0.tgz")).local_chart_dir() is None
        assert _make_resolver(tmp_path).local_chart_dir() is None

    def test_updater_failure_wrapped(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        updater = MagicMock()
        updater.update.side_effect = LookupError("dependency 'redis' has no repository")
        resolver = _make_resolver(tmp_path, release=_make_release(chart="app"), updater=updater)
        with pytest.raises(DependencyUpdateError) as exc_info:
            resolver.update_dependencies()
        assert is_kind(exc_info.value, ErrorKind.DEPENDENCY)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestExport:
    def test_remote_chart_copied(self, tmp_path: Path) -> None:
        archive = tmp_path / "downloads" / "x-1.0.0.tgz"
        archive.parent.mkdir()
        archive.write_bytes(b"chart-bytes")
        resolver = _make_resolver(tmp_path, locator=_CountingLocator(path=str(archive)))
        fs = WritableFS(tmp_path / "plan")

        copied = resolver.export(fs, "charts/app@default")

        assert copied == str(tmp_path / "plan" / "charts" / "app@default" / "x-1.0.0.tgz")
        assert Path(copied).read_bytes() == b"chart-bytes"

    def test_local_chart_not_copied(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        resolver = _make_resolver(tmp_path, release=_make_release(chart="app"))
        assert resolver.export(WritableFS(tmp_path / "plan"), "charts/app@default") is None
        assert not (tmp_path / "plan").exists()

    def test_copy_failure_wrapped(self, tmp_path: Path) -> None:
        resolver = _make_resolver(tmp_path, locator=_CountingLocator(path=str(tmp_path / "vanished.tgz")))
        with pytest.raises(ChartExportError) as exc_info:
            resolver.export(WritableFS(tmp_path / "plan"), "charts/app@default")
        assert is_kind(exc_info.value, ErrorKind.EXPORT)
