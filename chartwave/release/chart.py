"""Chart reference: which chart a release installs and how to fetch it.

A reference is written either as a bare scalar (``chart: bitnami/nginx``) or
as a mapping with version, credentials and verification options.  The shape
is chosen from the YAML node kind at decode time; afterwards every reference
is a ``ChartReference`` and nothing downstream branches on the shape.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

import yaml

from chartwave.errors import ChartNameEmptyError, UnknownFormatError

_NULL_TAG = "tag:yaml.org,2002:null"


@dataclass
class ChartReference:
    """Chart location and download options."""

    name: str
    version: str = ""
    repo_url: str = ""
    username: str = ""
    password: str = ""
    ca_file: str = ""
    cert_file: str = ""
    key_file: str = ""
    keyring: str = ""
    insecure: bool = False
    verify: bool = False
    pass_credentials: bool = False
    skip_dependency_update: bool = False
    skip_refresh: bool = False

    @property
    def is_oci(self) -> bool:
        return self.name.startswith("oci://")

    @property
    def is_scalar(self) -> bool:
        """True when only the name is set, so the reference encodes as a plain string."""
        return all(getattr(self, f.name) == f.default for f in fields(self) if f.name != "name")

    def to_yaml_value(self) -> str | dict[str, Any]:
        """Encode as a scalar when possible, else as a mapping of non-default fields."""
        if self.is_scalar:
            return self.name
        out: dict[str, Any] = {"name": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name != "name" and value != f.default:
                out[f.name] = value
        return out

    @classmethod
    def from_node(cls, node: yaml.Node, loader: yaml.SafeLoader | None = None) -> ChartReference:
        """Decode from a composed YAML node.

        Raises:
            UnknownFormatError: the node is neither a scalar nor a mapping.
            ChartNameEmptyError: the decoded name is blank.
        """
        line = node.start_mark.line + 1
        if isinstance(node, yaml.ScalarNode):
            ref = cls(name=str(node.value))
        elif isinstance(node, yaml.MappingNode):
            constructor = loader or yaml.SafeLoader("")
            bool_fields = {f.name for f in fields(cls) if isinstance(f.default, bool)}
            data: dict[Any, Any] = {}
            for key_node, value_node in node.value:
                key = constructor.construct_object(key_node, deep=True)
                if key in bool_fields:
                    data[key] = constructor.construct_object(value_node, deep=True)
                else:
                    data[key] = node_text(value_node, constructor)
            ref = cls._from_mapping(data, line)
        else:
            raise UnknownFormatError(_node_preview(node), line)

        if not ref.name.strip():
            raise ChartNameEmptyError(line)
        return ref

    @classmethod
    def from_value(cls, value: Any) -> ChartReference:
        """Decode from an already-loaded value (planfile import)."""
        if isinstance(value, str):
            ref = cls(name=value)
        elif isinstance(value, dict):
            ref = cls._from_mapping(value, None)
        else:
            raise UnknownFormatError(repr(value), 0)
        if not ref.name.strip():
            raise ChartNameEmptyError()
        return ref

    @classmethod
    def _from_mapping(cls, data: dict[Any, Any], line: int | None) -> ChartReference:
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            f = known.get(str(key))
            if f is None:
                continue
            if value is None:
                continue
            if isinstance(f.default, bool):
                kwargs[f.name] = value.lower() in ("true", "1", "yes") if isinstance(value, str) else bool(value)
            else:
                kwargs[f.name] = str(value)
        name = kwargs.pop("name", "")
        if not name.strip():
            raise ChartNameEmptyError(line)
        return cls(name=name, **kwargs)


def _node_preview(node: yaml.Node) -> str:
    if isinstance(node, yaml.SequenceNode):
        return "[...]"
    return str(getattr(node, "value", ""))


def node_text(node: yaml.Node, loader: yaml.SafeLoader) -> Any:
    """Construct *node* keeping scalars as their source text.

    ``version: 17.10`` stays ``"17.10"`` instead of round-tripping through
    a float.  Nulls decode to ``None``; sequences are converted item by item.
    """
    if isinstance(node, yaml.ScalarNode):
        return None if node.tag == _NULL_TAG else node.value
    if isinstance(node, yaml.SequenceNode):
        return [node_text(item, loader) for item in node.value]
    return loader.construct_object(node, deep=True)

