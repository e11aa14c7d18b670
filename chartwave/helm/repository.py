"""HTTP chart repository client.

Fetches a repository's ``index.yaml``, picks the chart version that satisfies
a constraint, and downloads the archive with sha256 digest verification.
Indexes and archives are cached on disk and written atomically.
"""

from __future__ import annotations

import hashlib
import os
import re
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx
import yaml

from chartwave.helm.semver import best_match
from chartwave.observability.logging import get_logger
from chartwave.repo.config import RepositoryConfig

_log = get_logger("helm.repository")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ChartVersion:
    """One entry of ``entries.<chart>`` in a repository index."""

    name: str
    version: str
    urls: tuple[str, ...]
    digest: str = ""


@dataclass
class RepositoryIndex:
    """Parsed ``index.yaml``."""

    entries: dict[str, list[ChartVersion]] = field(default_factory=dict)

    @classmethod
    def parse(cls, content: str | bytes) -> RepositoryIndex:
        data = yaml.safe_load(content)
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            raise ValueError("repository index has no entries")
        entries: dict[str, list[ChartVersion]] = {}
        for chart, versions in data["entries"].items():
            entries[chart] = [
                ChartVersion(
                    name=str(chart),
                    version=str(v.get("version", "")),
                    urls=tuple(v.get("urls") or ()),
                    digest=str(v.get("digest") or ""),
                )
                for v in versions or []
            ]
        return cls(entries=entries)

    def get(self, chart: str, constraint: str = "") -> ChartVersion:
        """Return the highest version of *chart* satisfying *constraint*.

        Raises:
            LookupError: chart unknown or no version matches.
        """
        versions = self.entries.get(chart)
        if not versions:
            raise LookupError(f"chart {chart!r} not found in repository index")
        by_version = {v.version: v for v in versions}
        if constraint in by_version:
            return by_version[constraint]
        picked = best_match(list(by_version), constraint)
        if picked is None:
            raise LookupError(f"chart {chart!r} version {constraint!r} not found in repository index")
        return by_version[picked]


def _safe_name(text: str) -> str:
    return _UNSAFE_CHARS.sub("_", text).strip("_") or "repo"


def _file_digest(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


class ChartRepositoryClient:
    """Downloads indexes and chart archives from HTTP(S) chart repositories.

    Args:
        cache_dir: Where indexes and archives are stored.
        timeout:   HTTP timeout in seconds.
        transport: Optional httpx transport (tests inject ``httpx.MockTransport``).
    """

    def __init__(
        self,
        cache_dir: str | Path,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._timeout = timeout
        self._transport = transport

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _client(self, repo: RepositoryConfig) -> httpx.Client:
        kwargs: dict[str, Any] = {"timeout": self._timeout, "follow_redirects": True}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        if repo.insecure:
            kwargs["verify"] = False
        elif repo.ca_file or repo.cert_file:
            ctx = ssl.create_default_context(cafile=repo.ca_file or None)
            if repo.cert_file:
                ctx.load_cert_chain(repo.cert_file, repo.key_file or None)
            kwargs["verify"] = ctx
        return httpx.Client(**kwargs)

    def _auth(self, repo: RepositoryConfig, url: str) -> tuple[str, str] | None:
        if not repo.username:
            return None
        # Credentials go to other hosts only when explicitly allowed.
        if not repo.pass_credentials and urlparse(url).netloc != urlparse(repo.url).netloc:
            return None
        return (repo.username, repo.password)

    def index_path(self, repo: RepositoryConfig) -> Path:
        return self._cache_dir / f"{_safe_name(repo.name or repo.url)}-index.yaml"

    def fetch_index(self, repo: RepositoryConfig, refresh: bool = True) -> RepositoryIndex:
        """Return the repository index, downloading it unless a cached copy may be reused."""
        cached = self.index_path(repo)
        if not refresh and cached.is_file():
            _log.debug("repository_index_cached", repo=repo.name, path=str(cached))
            return RepositoryIndex.parse(cached.read_bytes())

        index_url = repo.url.rstrip("/") + "/index.yaml"
        with self._client(repo) as client:
            response = client.get(index_url, auth=self._auth(repo, index_url))
            response.raise_for_status()
        content = response.content
        index = RepositoryIndex.parse(content)

        _atomic_write(cached, content)
        _log.info("repository_index_updated", repo=repo.name, url=index_url, charts=len(index.entries))
        return index

    def download(
        self,
        repo: RepositoryConfig,
        entry: ChartVersion,
        dest_dir: str | Path | None = None,
        require_digest: bool = False,
    ) -> Path:
        """Download *entry* into *dest_dir* (default: the cache) and return the archive path.

        An archive already on disk is reused when its digest matches.

        Raises:
            ValueError: the archive digest does not match, or a digest is
                required and the index provides none.
        """
        if not entry.urls:
            raise ValueError(f"chart {entry.name} {entry.version} has no download URL")
        if require_digest and not entry.digest:
            raise ValueError(f"chart {entry.name} {entry.version} cannot be verified: index has no digest")

        url = urljoin(repo.url.rstrip("/") + "/", entry.urls[0])
        target_dir = Path(dest_dir) if dest_dir is not None else self._cache_dir / _safe_name(repo.name or repo.url)
        target = target_dir / f"{entry.name}-{entry.version}.tgz"

        if target.is_file() and entry.digest and _file_digest(target) == entry.digest:
            _log.debug("chart_archive_cached", chart=entry.name, version=entry.version, path=str(target))
            return target

        with self._client(repo) as client:
            response = client.get(url, auth=self._auth(repo, url))
            response.raise_for_status()
        content = response.content

        if entry.digest:
            actual = hashlib.sha256(content).hexdigest()
            if actual != entry.digest:
                raise ValueError(f"digest mismatch for {entry.name} {entry.version}: expected {entry.digest}, got {actual}")

        _atomic_write(target, content)
        _log.info("chart_downloaded", chart=entry.name, version=entry.version, url=url, path=str(target))
        return target


def _atomic_write(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
    with os.fdopen(fd, "wb") as fh:
        fh.write(content)
    os.replace(tmp, path)
