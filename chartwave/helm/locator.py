"""Chart location: turns a chart name into a path on disk.

Local names (paths that exist) are returned as-is.  Remote names are either
``<repo>/<chart>`` looked up in the repository registry or a bare chart name
paired with ``repo_url`` on the reference; the matching archive is downloaded
into the chart cache directory.
"""

from __future__ import annotations

from pathlib import Path

from chartwave.helm.repository import ChartRepositoryClient
from chartwave.observability.logging import get_logger
from chartwave.release.chart import ChartReference
from chartwave.repo.config import RepositoryConfig
from chartwave.repo.registry import RepositoryRegistry

_log = get_logger("helm.locator")


class ChartLocator:
    """Locates local charts and downloads remote ones."""

    def __init__(self, registry: RepositoryRegistry, client: ChartRepositoryClient) -> None:
        self._registry = registry
        self._client = client

    def locate(self, name: str, ref: ChartReference) -> str:
        """Return the on-disk path of chart *name* using the options in *ref*.

        Raises:
            LookupError: the chart or repository cannot be found.
            NotFoundError: ``<repo>/`` prefix names an unknown repository.
            httpx.HTTPError: the repository is unreachable.
            ValueError: the archive fails verification.
        """
        local = Path(name)
        if local.exists():
            return str(local.resolve())

        if ref.is_oci:
            raise LookupError(f"OCI registries are not supported: {name}")

        repo, chart = self._repository_for(name, ref)
        index = self._client.fetch_index(repo, refresh=not ref.skip_refresh)
        entry = index.get(chart, ref.version)
        _log.debug("chart_version_selected", chart=chart, constraint=ref.version, version=entry.version)
        path = self._client.download(repo, entry, require_digest=ref.verify)
        return str(path)

    def _repository_for(self, name: str, ref: ChartReference) -> tuple[RepositoryConfig, str]:
        if ref.repo_url:
            known = self._registry.find_by_url(ref.repo_url)
            repo = RepositoryConfig(
                name=known.name if known else "",
                url=ref.repo_url,
                username=ref.username or (known.username if known else ""),
                password=ref.password or (known.password if known else ""),
                ca_file=ref.ca_file,
                cert_file=ref.cert_file,
                key_file=ref.key_file,
                insecure=ref.insecure,
                pass_credentials=ref.pass_credentials,
            )
            return repo, name

        if "/" not in name:
            raise LookupError(f"chart {name!r} is not a local path and names no repository")
        repo_name, chart = name.split("/", 1)
        return self._registry.find(repo_name), chart
