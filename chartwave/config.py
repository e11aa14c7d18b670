"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from chartwave.models.config import (
    BuildConfig,
    ChartwaveConfig,
    DiffConfig,
    DiffMode,
    HelmConfig,
    KubeConfig,
    LogConfig,
)
from chartwave.observability.logging import LOG_FORMATS


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"CHARTWAVE_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _env_list(key: str) -> list[str]:
    raw = _env(key, "")
    return [item for item in raw.split(",") if item.strip()]


def _validate_plandir(value: str) -> str:
    if not value:
        raise ValueError("Plan directory must not be empty")
    return value if value.endswith("/") else value + "/"


def _validate_diff_mode(value: str) -> DiffMode:
    try:
        return DiffMode(value.lower())
    except ValueError:
        valid = {m.value for m in DiffMode}
        raise ValueError(f"Invalid diff mode: {value}. Must be one of {valid}") from None


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {value}. Must be one of {set(LOG_FORMATS)}")
    return value.lower()


def load_config() -> ChartwaveConfig:
    """Load configuration from CHARTWAVE_* environment variables."""
    helm_defaults = HelmConfig()
    return ChartwaveConfig(
        build=BuildConfig(
            plandir=_validate_plandir(_env("PLANDIR", ".chartwave/")),
            yml=_env("YML", "helmwave.yml"),
            tags=_env_list("TAGS"),
            match_all_tags=_env_bool("MATCH_ALL_TAGS", False),
        ),
        diff=DiffConfig(
            mode=_validate_diff_mode(_env("DIFF_MODE", "local")),
            show_secret=_env_bool("SHOW_SECRET", False),
        ),
        helm=HelmConfig(
            chart_cache_dir=_env("CHART_CACHE_DIR", helm_defaults.chart_cache_dir),
            repository_config=_env("HELM_REPOSITORY_CONFIG", helm_defaults.repository_config),
            http_timeout=_env_float("HTTP_TIMEOUT", 30.0, min_val=1.0),
        ),
        kube=KubeConfig(
            context=_env("KUBE_CONTEXT", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
