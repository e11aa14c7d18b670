"""Manifest rendering through the ``helm template`` command."""

from __future__ import annotations

import shutil
import subprocess
from typing import TYPE_CHECKING

from chartwave.observability.logging import get_logger

if TYPE_CHECKING:
    from chartwave.release.config import ReleaseConfig

_log = get_logger("helm.template")


class HelmTemplateRenderer:
    """Renders a release's manifest offline with ``helm template``.

    Args:
        helm_bin: helm executable name or path.
        base_dir: directory values file paths are relative to.
    """

    def __init__(self, helm_bin: str = "helm", base_dir: str = ".", timeout: float = 120.0) -> None:
        self._helm_bin = helm_bin
        self._base_dir = base_dir
        self._timeout = timeout

    def available(self) -> bool:
        return shutil.which(self._helm_bin) is not None

    def command(self, release: ReleaseConfig, chart_path: str) -> list[str]:
        cmd = [
            self._helm_bin,
            "template",
            release.name,
            chart_path,
            "--namespace",
            release.namespace,
        ]
        for values in release.values:
            cmd += ["--values", values]
        if release.offline_kube_version:
            cmd += ["--kube-version", release.offline_kube_version]
        return cmd

    def render(self, release: ReleaseConfig, chart_path: str) -> str:
        """Return the rendered manifest.

        Raises:
            RuntimeError: helm exited non-zero.
        """
        cmd = self.command(release, chart_path)
        _log.debug("helm_template", release=release.unique_name, cmd=cmd)
        proc = subprocess.run(
            cmd,
            cwd=self._base_dir,
            capture_output=True,
            text=True,
            timeout=self._timeout,
            check=False,
        )
        if proc.returncode != 0:
            raise RuntimeError(f"helm template failed for {release.unique_name}: {proc.stderr.strip()}")
        return proc.stdout
