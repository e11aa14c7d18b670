"""Chart metadata and loading from a directory or a ``.tgz`` archive."""

from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CHART_FILE = "Chart.yaml"
REQUIREMENTS_FILE = "requirements.yaml"
CHARTS_DIR = "charts"


@dataclass(frozen=True)
class ChartDependency:
    """An entry of ``dependencies`` in Chart.yaml."""

    name: str
    version: str = ""
    repository: str = ""
    alias: str = ""
    condition: str = ""


@dataclass
class ChartMetadata:
    """The subset of Chart.yaml chartwave acts on."""

    name: str
    version: str
    api_version: str = "v2"
    type: str = ""
    app_version: str = ""
    deprecated: bool = False
    dependencies: list[ChartDependency] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChartMetadata:
        name = str(data.get("name") or "")
        if not name:
            raise ValueError("Chart.yaml has no name")
        version = str(data.get("version") or "")
        if not version:
            raise ValueError(f"Chart.yaml of {name} has no version")
        return cls(
            name=name,
            version=version,
            api_version=str(data.get("apiVersion") or "v2"),
            type=str(data.get("type") or ""),
            app_version=str(data.get("appVersion") or ""),
            deprecated=bool(data.get("deprecated", False)),
            dependencies=_parse_dependencies(data.get("dependencies")),
        )


@dataclass
class Chart:
    """A loaded chart: metadata plus the names of vendored subcharts."""

    metadata: ChartMetadata
    path: str
    subcharts: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    def missing_dependencies(self) -> list[str]:
        """Declared dependencies with no subchart of the same name in charts/."""
        present = set(self.subcharts)
        return [d.name for d in self.metadata.dependencies if d.name not in present]


def _parse_dependencies(raw: Any) -> list[ChartDependency]:
    if not raw:
        return []
    if not isinstance(raw, list):
        raise ValueError("Chart.yaml dependencies must be a list")
    deps = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ValueError(f"invalid dependency entry: {entry!r}")
        deps.append(
            ChartDependency(
                name=str(entry["name"]),
                version=str(entry.get("version") or ""),
                repository=str(entry.get("repository") or ""),
                alias=str(entry.get("alias") or ""),
                condition=str(entry.get("condition") or ""),
            )
        )
    return deps


def _parse_metadata(raw: bytes | str, requirements: bytes | str | None = None) -> ChartMetadata:
    data = yaml.safe_load(raw)
    if not isinstance(data, dict):
        raise ValueError("Chart.yaml is not a mapping")
    # apiVersion v1 charts keep dependencies in requirements.yaml
    if requirements is not None and not data.get("dependencies"):
        req = yaml.safe_load(requirements) or {}
        data["dependencies"] = req.get("dependencies")
    return ChartMetadata.from_dict(data)


def read_chart_metadata(root: Path) -> ChartMetadata:
    """Metadata of an unpacked chart; subcharts under charts/ are not opened."""
    chart_file = root / CHART_FILE
    if not chart_file.is_file():
        raise ValueError(f"{CHART_FILE} not found in {root}")
    req_file = root / REQUIREMENTS_FILE
    return _parse_metadata(
        chart_file.read_bytes(),
        req_file.read_bytes() if req_file.is_file() else None,
    )


class ChartLoader:
    """Loads a chart from an unpacked directory or a gzipped tarball.

    Raises OSError, tarfile.TarError, yaml.YAMLError or ValueError on
    unreadable or malformed charts.
    """

    def load(self, path: str) -> Chart:
        p = Path(path)
        if p.is_dir():
            return self._load_dir(p)
        with tarfile.open(p, "r:gz") as tar:
            return self._load_archive(tar, str(p))

    def _load_dir(self, root: Path) -> Chart:
        metadata = read_chart_metadata(root)

        subcharts: list[str] = []
        charts_dir = root / CHARTS_DIR
        if charts_dir.is_dir():
            for entry in sorted(charts_dir.iterdir()):
                if entry.is_dir() and (entry / CHART_FILE).is_file():
                    subcharts.append(self._load_dir(entry).name)
                elif entry.name.endswith(".tgz"):
                    with tarfile.open(entry, "r:gz") as sub:
                        subcharts.append(self._load_archive(sub, str(entry)).name)
        return Chart(metadata=metadata, path=str(root), subcharts=subcharts)

    def _load_archive(self, tar: tarfile.TarFile, path: str) -> Chart:
        files: dict[str, tarfile.TarInfo] = {_member_name(m.name): m for m in tar.getmembers() if m.isfile()}
        top_chart = [n for n in files if n.count("/") == 1 and n.endswith("/" + CHART_FILE)]
        if not top_chart:
            raise ValueError(f"{CHART_FILE} not found in archive {path}")
        top = top_chart[0].split("/", 1)[0]

        req = files.get(f"{top}/{REQUIREMENTS_FILE}")
        metadata = _parse_metadata(
            _read_member(tar, files[f"{top}/{CHART_FILE}"]),
            _read_member(tar, req) if req is not None else None,
        )

        subcharts: list[str] = []
        prefix = f"{top}/{CHARTS_DIR}/"
        for name in sorted(files):
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix) :]
            if rest.count("/") == 1 and rest.endswith("/" + CHART_FILE):
                sub_meta = _parse_metadata(_read_member(tar, files[name]))
                subcharts.append(sub_meta.name)
            elif "/" not in rest and rest.endswith(".tgz"):
                nested = io.BytesIO(_read_member(tar, files[name]))
                with tarfile.open(fileobj=nested, mode="r:gz") as sub:
                    subcharts.append(self._load_archive(sub, f"{path}:{rest}").name)
        return Chart(metadata=metadata, path=path, subcharts=subcharts)


def _member_name(name: str) -> str:
    return name.removeprefix("./")


def _read_member(tar: tarfile.TarFile, member: tarfile.TarInfo) -> bytes:
    fh = tar.extractfile(member)
    if fh is None:
        raise ValueError(f"cannot read {member.name}")
    with fh:
        return fh.read()
