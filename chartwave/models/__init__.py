"""Configuration data structures for chartwave."""

from chartwave.models.config import (
    BuildConfig,
    ChartwaveConfig,
    DiffConfig,
    DiffMode,
    HelmConfig,
    KubeConfig,
    LogConfig,
)

__all__ = [
    "BuildConfig",
    "ChartwaveConfig",
    "DiffConfig",
    "DiffMode",
    "HelmConfig",
    "KubeConfig",
    "LogConfig",
]
