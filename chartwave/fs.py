"""Filesystem views used during chart resolution.

CurrentPathFS  -- read-only view rooted at the directory the declaration lives in.
WritableFS     -- writable view rooted at the plan (export) directory.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path


class CurrentPathFS:
    """Resolves relative paths against a fixed base directory."""

    def __init__(self, base: str | Path) -> None:
        self._base = Path(base)

    @property
    def current_path(self) -> Path:
        return self._base

    def join(self, name: str) -> Path:
        """Return *name* resolved against the base path (absolute names pass through)."""
        return self._base / os.path.normpath(name)

    def exists(self, name: str) -> bool:
        return self.join(name).exists()

    def is_dir(self, name: str) -> bool:
        return self.join(name).is_dir()


class WritableFS:
    """Creates directories and copies files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def join(self, name: str) -> Path:
        return self._root / name

    def mkdir_all(self, name: str, mode: int = 0o750) -> Path:
        path = self.join(name)
        path.mkdir(mode=mode, parents=True, exist_ok=True)
        return path

    def copy_file(self, src: str | Path, dest_dir: str) -> Path:
        """Copy *src* into ``root/dest_dir`` keeping its file name."""
        target = self.join(dest_dir) / Path(src).name
        shutil.copyfile(src, target)
        return target
