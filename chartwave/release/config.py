"""Release configuration: one deployable chart instance."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import yaml

from chartwave.errors import DeclarationError
from chartwave.release.chart import ChartReference, node_text

DEFAULT_NAMESPACE = "default"
DEFAULT_TIMEOUT = "5m"
_BOOL_FIELDS = ("create_namespace", "wait")


@dataclass
class ReleaseConfig:
    """A release as declared in the declaration file and stored in the planfile.

    Owned by exactly one Plan.  The chart name is the only field mutated after
    decode and must be changed through ``set_chart_name``.
    """

    name: str
    chart: ChartReference
    namespace: str = DEFAULT_NAMESPACE
    tags: list[str] = field(default_factory=list)
    values: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    create_namespace: bool = False
    wait: bool = False
    timeout: str = DEFAULT_TIMEOUT
    offline_kube_version: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def unique_name(self) -> str:
        """``name@namespace``: the identity of a release within a plan."""
        return f"{self.name}@{self.namespace}"

    def set_chart_name(self, name: str) -> None:
        with self._lock:
            self.chart.name = name

    def has_any_tag(self, tags: list[str]) -> bool:
        return any(t in self.tags for t in tags)

    def has_all_tags(self, tags: list[str]) -> bool:
        return all(t in self.tags for t in tags)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "chart": self.chart.to_yaml_value(),
        }
        if self.tags:
            out["tags"] = list(self.tags)
        if self.values:
            out["values"] = list(self.values)
        if self.depends_on:
            out["depends_on"] = list(self.depends_on)
        if self.create_namespace:
            out["create_namespace"] = True
        if self.wait:
            out["wait"] = True
        if self.timeout != DEFAULT_TIMEOUT:
            out["timeout"] = self.timeout
        if self.offline_kube_version:
            out["offline_kube_version"] = self.offline_kube_version
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReleaseConfig:
        """Build from a plain mapping (planfile import)."""
        if "chart" not in data:
            raise DeclarationError(f"release {data.get('name', '<unnamed>')!r} has no chart")
        return cls._build(data, ChartReference.from_value(data["chart"]))

    @classmethod
    def from_node(cls, node: yaml.Node, loader: yaml.SafeLoader) -> ReleaseConfig:
        """Build from a composed YAML mapping node (declaration decode)."""
        line = node.start_mark.line + 1
        if not isinstance(node, yaml.MappingNode):
            raise DeclarationError(f"release at {line} line must be a mapping")

        chart: ChartReference | None = None
        data: dict[str, Any] = {}
        for key_node, value_node in node.value:
            key = loader.construct_object(key_node, deep=True)
            if key == "chart":
                chart = ChartReference.from_node(value_node, loader)
            elif key in _BOOL_FIELDS:
                data[key] = loader.construct_object(value_node, deep=True)
            else:
                data[key] = node_text(value_node, loader)

        if chart is None:
            raise DeclarationError(f"release {data.get('name', '<unnamed>')!r} at {line} line has no chart")
        return cls._build(data, chart)

    @classmethod
    def _build(cls, data: dict[str, Any], chart: ChartReference) -> ReleaseConfig:
        name = str(data.get("name") or "").strip()
        if not name:
            raise DeclarationError("release name is empty")
        return cls(
            name=name,
            chart=chart,
            namespace=str(data.get("namespace") or DEFAULT_NAMESPACE),
            tags=[str(t) for t in data.get("tags") or []],
            values=[str(v) for v in data.get("values") or []],
            depends_on=[str(d) for d in data.get("depends_on") or []],
            create_namespace=bool(data.get("create_namespace", False)),
            wait=bool(data.get("wait", False)),
            timeout=str(data.get("timeout") or DEFAULT_TIMEOUT),
            offline_kube_version=str(data.get("offline_kube_version") or ""),
        )
