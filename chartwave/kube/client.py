"""Kubernetes client configuration."""

from __future__ import annotations

from chartwave.observability.logging import get_logger

_log = get_logger("kube.client")


async def load_kube_config(context: str = "") -> None:
    """Configure kubernetes-asyncio from in-cluster config, falling back to kubeconfig."""
    # Import lazily: kubernetes-asyncio attempts cluster auto-detection on import
    # in some versions, and plan-only commands never need it.
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]

    if not context:
        try:
            k8s_config.load_incluster_config()
            _log.info("k8s client configured from in-cluster service account")
            return
        except k8s_config.ConfigException:
            pass

    await k8s_config.load_kube_config(context=context or None)
    _log.info("k8s client configured from kubeconfig", context=context or "<current>")
