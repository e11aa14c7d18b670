"""Registry of named chart repositories.

The registry enforces name uniqueness and validates every entry before it is
stored, so a failed ``add`` never leaves the registry modified.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from pathlib import Path

import yaml

from chartwave.observability.logging import get_logger
from chartwave.repo.config import RepositoryConfig
from chartwave.repo.errors import DuplicateError, NotFoundError

_log = get_logger("repo.registry")

# helm's repositories.yaml uses camelCase keys for a few fields
_HELM_KEYS = {
    "caFile": "ca_file",
    "certFile": "cert_file",
    "keyFile": "key_file",
    "insecure_skip_tls_verify": "insecure",
    "pass_credentials_all": "pass_credentials",
}


class RepositoryRegistry:
    """Ordered, name-unique collection of RepositoryConfig entries."""

    def __init__(self) -> None:
        self._repos: dict[str, RepositoryConfig] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_configs(cls, configs: Iterable[RepositoryConfig]) -> RepositoryRegistry:
        registry = cls()
        for cfg in configs:
            registry.add(cfg)
        return registry

    def add(self, cfg: RepositoryConfig) -> None:
        """Register *cfg*.

        Raises:
            NameEmptyError, URLEmptyError, InvalidURLError: on invalid fields.
            DuplicateError: if the name is taken and ``cfg.force`` is not set.
        """
        cfg.validate()
        with self._lock:
            if cfg.name in self._repos and not cfg.force:
                raise DuplicateError(cfg.name)
            self._repos[cfg.name] = cfg
        _log.debug("repository_added", name=cfg.name, url=cfg.url)

    def find(self, name: str) -> RepositoryConfig:
        with self._lock:
            try:
                return self._repos[name]
            except KeyError:
                raise NotFoundError(name) from None

    def remove(self, name: str) -> None:
        with self._lock:
            if name not in self._repos:
                raise NotFoundError(name)
            del self._repos[name]
        _log.debug("repository_removed", name=name)

    def find_by_url(self, url: str) -> RepositoryConfig | None:
        """Return the first repository whose URL matches *url*, ignoring a trailing slash."""
        wanted = url.rstrip("/")
        with self._lock:
            for cfg in self._repos.values():
                if cfg.url.rstrip("/") == wanted:
                    return cfg
        return None

    def names(self) -> list[str]:
        with self._lock:
            return list(self._repos)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._repos

    def __iter__(self) -> Iterator[RepositoryConfig]:
        with self._lock:
            return iter(list(self._repos.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._repos)


def load_helm_repositories(path: str | Path) -> list[RepositoryConfig]:
    """Read helm's ``repositories.yaml``.  A missing file yields an empty list."""
    p = Path(path)
    if not p.is_file():
        _log.debug("helm_repository_config_missing", path=str(p))
        return []

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    configs: list[RepositoryConfig] = []
    for entry in data.get("repositories") or []:
        normalised = {_HELM_KEYS.get(k, k): v for k, v in entry.items()}
        configs.append(RepositoryConfig.from_dict(normalised))
    return configs
