"""Shared fixtures for chartwave integration tests.

Provides on-disk charts, a chart repository served through
``httpx.MockTransport`` and fake locator/renderer collaborators, so the
build -> export -> import -> diff pipeline can run without helm, a network
or a Kubernetes cluster.
"""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path

import httpx
import pytest

from chartwave.helm.repository import ChartRepositoryClient
from chartwave.release import ChartReference, ReleaseConfig

# ---------------------------------------------------------------------------
# Chart factories
# ---------------------------------------------------------------------------


def chart_yaml(name: str, version: str = "1.0.0", deps: list[tuple[str, str]] | None = None) -> str:
    """Chart.yaml text; *deps* are ``(name, repository)`` pairs."""
    text = f"apiVersion: v2\nname: {name}\nversion: {version}\n"
    if deps:
        text += "dependencies:\n"
        for dep_name, repository in deps:
            text += f"  - name: {dep_name}\n    version: '>=1.0.0'\n    repository: '{repository}'\n"
    return text


def make_chart_archive(name: str, version: str = "1.0.0") -> bytes:
    """A minimal ``<name>-<version>.tgz`` chart archive."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for path, content in {
            f"{name}/Chart.yaml": chart_yaml(name, version),
            f"{name}/values.yaml": "replicaCount: 1\n",
        }.items():
            data = content.encode()
            info = tarfile.TarInfo(path)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_chart_dir(root: Path, name: str, deps: list[tuple[str, str]] | None = None) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "Chart.yaml").write_text(chart_yaml(name, deps=deps))
    return root


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeLocator:
    """Returns existing paths as-is and maps remote names to prepared archives."""

    def __init__(self, archives: dict[str, Path]) -> None:
        self.archives = archives
        self.remote_calls: list[str] = []

    def locate(self, name: str, ref: ChartReference) -> str:
        if Path(name).exists():
            return name
        self.remote_calls.append(name)
        try:
            return str(self.archives[name])
        except KeyError:
            raise LookupError(f"chart {name!r} not found in repository index") from None


class FakeRenderer:
    """Renders one ConfigMap per release recording the chart it was rendered from."""

    def __init__(self, fail_for: str = "") -> None:
        self.fail_for = fail_for

    def render(self, release: ReleaseConfig, chart_path: str) -> str:
        if release.name == self.fail_for:
            raise RuntimeError(f"helm template failed for {release.unique_name}")
        return (
            "apiVersion: v1\n"
            "kind: ConfigMap\n"
            "metadata:\n"
            f"  name: {release.name}\n"
            "data:\n"
            f"  chart: {Path(chart_path).name}\n"
            f"  tags: '{','.join(release.tags)}'\n"
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def archives(tmp_path: Path) -> dict[str, Path]:
    """Remote chart name -> downloaded archive for bitnami/redis and bitnami/nginx."""
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    out: dict[str, Path] = {}
    for name, version in (("redis", "17.3.0"), ("nginx", "15.0.0")):
        path = downloads / f"{name}-{version}.tgz"
        path.write_bytes(make_chart_archive(name, version))
        out[f"bitnami/{name}"] = path
    return out


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Directory holding the declaration file and local charts."""
    path = tmp_path / "project"
    make_chart_dir(path / "charts" / "web", "web")
    return path


@pytest.fixture
def repo_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def repo_client(tmp_path: Path, repo_requests: list[httpx.Request]) -> ChartRepositoryClient:
    """Client for a repository at https://charts.example.com/stable serving redis and common."""
    redis = make_chart_archive("redis", "17.3.0")
    common = make_chart_archive("common", "2.1.0")
    index = (
        "apiVersion: v1\n"
        "entries:\n"
        "  redis:\n"
        "    - version: 17.3.0\n"
        "      urls: [redis-17.3.0.tgz]\n"
        f"      digest: {hashlib.sha256(redis).hexdigest()}\n"
        "    - version: 16.0.0\n"
        "      urls: [redis-16.0.0.tgz]\n"
        "  common:\n"
        "    - version: 2.1.0\n"
        "      urls: [common-2.1.0.tgz]\n"
        f"      digest: {hashlib.sha256(common).hexdigest()}\n"
    )
    files = {"/stable/index.yaml": index.encode(), "/stable/redis-17.3.0.tgz": redis, "/stable/common-2.1.0.tgz": common}

    def handler(request: httpx.Request) -> httpx.Response:
        repo_requests.append(request)
        body = files.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    return ChartRepositoryClient(tmp_path / "chart-cache", transport=httpx.MockTransport(handler))
