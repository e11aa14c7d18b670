"""Release/repository declaration: templating and decoding.

The declaration is the user-written document (``helmwave.yml``)::

    project: shop
    version: "0.4.0"
    repositories:
      - name: bitnami
        url: https://charts.bitnami.com/bitnami
    releases:
      - name: redis
        namespace: cache
        chart: bitnami/redis
        tags: [backend]

Decoding works on composed YAML nodes so that chart references can be
decoded by node kind and errors carry source line numbers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import yaml

from chartwave.errors import DeclarationError
from chartwave.release.chart import node_text
from chartwave.release.config import ReleaseConfig
from chartwave.repo.config import RepositoryConfig


class Templater(Protocol):
    """Produces the raw declaration text from a source file."""

    def render(self, source: str) -> str: ...


class CopyTemplater:
    """Returns the file content unchanged."""

    def render(self, source: str) -> str:
        return Path(source).read_text(encoding="utf-8")


class EnvTemplater:
    """Expands ``$VAR`` / ``${VAR}`` references from the environment."""

    def __init__(self, env: dict[str, str] | None = None) -> None:
        self._env = env

    def render(self, source: str) -> str:
        text = Path(source).read_text(encoding="utf-8")
        if self._env is None:
            return os.path.expandvars(text)
        for key in sorted(self._env, key=len, reverse=True):
            text = text.replace("${" + key + "}", self._env[key]).replace("$" + key, self._env[key])
        return text


TEMPLATERS: dict[str, type[CopyTemplater] | type[EnvTemplater]] = {
    "copy": CopyTemplater,
    "env": EnvTemplater,
}


@dataclass
class Declaration:
    """Decoded declaration: plan metadata, repositories and releases in order."""

    project: str = ""
    version: str = ""
    repositories: list[RepositoryConfig] = field(default_factory=list)
    releases: list[ReleaseConfig] = field(default_factory=list)


def decode_declaration(text: str) -> Declaration:
    """Decode declaration text.

    Raises:
        DeclarationError: malformed document structure.
        UnknownFormatError, ChartNameEmptyError: invalid chart references.
    """
    try:
        root = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise DeclarationError(f"failed to parse declaration: {exc}") from exc

    if root is None:
        return Declaration()
    if not isinstance(root, yaml.MappingNode):
        raise DeclarationError("declaration must be a mapping")

    loader = yaml.SafeLoader("")
    decl = Declaration()
    for key_node, value_node in root.value:
        key = loader.construct_object(key_node, deep=True)
        if key == "project":
            decl.project = str(node_text(value_node, loader) or "")
        elif key == "version":
            decl.version = str(node_text(value_node, loader) or "")
        elif key == "repositories":
            for item in _sequence(value_node, "repositories"):
                data = loader.construct_object(item, deep=True)
                if not isinstance(data, dict):
                    raise DeclarationError(f"repository at {item.start_mark.line + 1} line must be a mapping")
                decl.repositories.append(RepositoryConfig.from_dict(data))
        elif key == "releases":
            for item in _sequence(value_node, "releases"):
                decl.releases.append(ReleaseConfig.from_node(item, loader))
    return decl


def _sequence(node: yaml.Node, what: str) -> list[yaml.Node]:
    if isinstance(node, yaml.ScalarNode) and node.value in ("", "~", "null"):
        return []
    if not isinstance(node, yaml.SequenceNode):
        raise DeclarationError(f"{what} at {node.start_mark.line + 1} line must be a list")
    return list(node.value)
