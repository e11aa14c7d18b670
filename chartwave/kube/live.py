"""Live manifests from helm's release storage.

Helm v3 stores every release revision in a Secret named
``sh.helm.release.v1.<release>.v<revision>`` in the release namespace,
labelled ``owner=helm``, ``name=<release>``, ``status=<status>`` and
``version=<revision>``.  The ``release`` key holds base64(gzip(json)); the
JSON ``manifest`` field is the rendered manifest that is currently applied.
"""

from __future__ import annotations

import base64
import gzip
import json
from typing import TYPE_CHECKING, Any

from chartwave.observability.logging import get_logger

if TYPE_CHECKING:
    from chartwave.release.config import ReleaseConfig

_log = get_logger("kube.live")

_GZIP_MAGIC = b"\x1f\x8b\x08"


def decode_release_payload(payload: str | bytes) -> dict[str, Any]:
    """Decode helm's stored release (the Secret value after Kubernetes' own base64)."""
    raw = base64.b64decode(payload)
    if raw.startswith(_GZIP_MAGIC):
        raw = gzip.decompress(raw)
    return json.loads(raw)


def encode_release_payload(release: dict[str, Any]) -> str:
    """Inverse of ``decode_release_payload``."""
    return base64.b64encode(gzip.compress(json.dumps(release).encode())).decode()


class HelmSecretManifestProvider:
    """Reads the deployed manifest of a release from helm's release Secrets.

    Args:
        core_api: a ``kubernetes_asyncio.client.CoreV1Api``; created lazily
                  from the already-loaded kube config when omitted.
    """

    def __init__(self, core_api: Any | None = None) -> None:
        self._api = core_api

    def _core_api(self) -> Any:
        if self._api is None:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            self._api = k8s_client.CoreV1Api()
        return self._api

    async def get_manifest(self, release: ReleaseConfig) -> str | None:
        """Return the manifest of the latest deployed revision, or None if not installed."""
        api = self._core_api()
        selector = f"owner=helm,name={release.name},status=deployed"
        secrets = await api.list_namespaced_secret(release.namespace, label_selector=selector)
        items = list(secrets.items or [])
        if not items:
            _log.debug("release_not_deployed", release=release.unique_name)
            return None

        latest = max(items, key=lambda s: int((s.metadata.labels or {}).get("version", "0")))
        payload = (latest.data or {}).get("release")
        if not payload:
            _log.warning("release_secret_empty", release=release.unique_name, secret=latest.metadata.name)
            return None

        # Secret.data values arrive base64-encoded by the API server
        stored = base64.b64decode(payload)
        return str(decode_release_payload(stored).get("manifest", ""))
