"""Kubernetes access for live diffs.

Submodules:
    client -- kubernetes-asyncio configuration (in-cluster or kubeconfig).
    live   -- deployed manifests read from helm release Secrets.
"""

from chartwave.kube.client import load_kube_config
from chartwave.kube.live import HelmSecretManifestProvider, decode_release_payload, encode_release_payload

__all__ = [
    "HelmSecretManifestProvider",
    "decode_release_payload",
    "encode_release_payload",
    "load_kube_config",
]
