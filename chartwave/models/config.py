"""Configuration data structures."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum


class DiffMode(StrEnum):
    """What a freshly built plan is compared against."""

    LOCAL = "local"
    LIVE = "live"
    NONE = "none"


@dataclass
class BuildConfig:
    """Plan build configuration."""

    plandir: str = ".chartwave/"
    yml: str = "helmwave.yml"
    tags: list[str] = field(default_factory=list)
    match_all_tags: bool = False


@dataclass
class DiffConfig:
    """Diff presentation configuration."""

    mode: DiffMode = DiffMode.LOCAL
    show_secret: bool = False


@dataclass
class HelmConfig:
    """Locations helm itself uses, reused for repository and chart lookups."""

    chart_cache_dir: str = field(
        default_factory=lambda: os.path.join(os.path.expanduser("~"), ".cache", "chartwave", "charts")
    )
    repository_config: str = field(
        default_factory=lambda: os.path.join(os.path.expanduser("~"), ".config", "helm", "repositories.yaml")
    )
    http_timeout: float = 30.0


@dataclass
class KubeConfig:
    """Kubernetes client configuration."""

    context: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class ChartwaveConfig:
    """Top-level chartwave configuration."""

    build: BuildConfig = field(default_factory=BuildConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
    helm: HelmConfig = field(default_factory=HelmConfig)
    kube: KubeConfig = field(default_factory=KubeConfig)
    log: LogConfig = field(default_factory=LogConfig)
