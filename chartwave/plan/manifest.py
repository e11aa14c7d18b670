"""Parsing of rendered Kubernetes manifests (multi-document YAML)."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

import yaml

from chartwave.errors import ManifestParseError

_MASK = "***"
_SECRET_FIELDS = ("data", "stringData")


@dataclass(frozen=True)
class KubeResource:
    """One object from a rendered manifest."""

    api_version: str
    kind: str
    name: str
    namespace: str
    body: dict[str, Any]

    @property
    def key(self) -> str:
        """``Kind/namespace/name``, stable across renders."""
        return f"{self.kind}/{self.namespace}/{self.name}" if self.namespace else f"{self.kind}/{self.name}"


def parse_manifest(text: str, default_namespace: str = "", source: str = "") -> list[KubeResource]:
    """Split *text* into resources, skipping empty documents and non-objects.

    Raises:
        ManifestParseError: *text* is not valid YAML; *source* names it in the message.
    """
    try:
        docs = list(yaml.safe_load_all(text or ""))
    except yaml.YAMLError as exc:
        raise ManifestParseError(source or "<manifest>", str(exc)) from exc

    resources: list[KubeResource] = []
    for doc in docs:
        if not isinstance(doc, dict) or not doc.get("kind"):
            continue
        metadata = doc.get("metadata") or {}
        resources.append(
            KubeResource(
                api_version=str(doc.get("apiVersion", "")),
                kind=str(doc["kind"]),
                name=str(metadata.get("name", "")),
                namespace=str(metadata.get("namespace") or default_namespace),
                body=doc,
            )
        )
    return resources


def mask_secret(body: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a Secret body with every data value replaced by a mask."""
    if body.get("kind") != "Secret":
        return body
    masked = dict(body)
    for key in _SECRET_FIELDS:
        values = body.get(key)
        if isinstance(values, dict):
            masked[key] = {k: _masked(v) for k, v in values.items()}
    return masked


def _masked(value: Any) -> str:
    # a short digest keeps changed values visible in diffs without exposing them
    digest = hashlib.sha256(str(value).encode()).hexdigest()[:12]
    return f"{_MASK} sha256:{digest}"
