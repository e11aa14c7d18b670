"""Chart repository configuration."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any
from urllib.parse import urlparse

from chartwave.repo.errors import InvalidURLError, NameEmptyError, URLEmptyError

SUPPORTED_SCHEMES = ("http", "https", "oci", "file")


@dataclass
class RepositoryConfig:
    """A named chart source with its credentials and TLS options."""

    name: str
    url: str
    username: str = ""
    password: str = ""
    ca_file: str = ""
    cert_file: str = ""
    key_file: str = ""
    insecure: bool = False
    pass_credentials: bool = False
    force: bool = False

    @property
    def is_oci(self) -> bool:
        return self.url.startswith("oci://")

    def validate(self) -> None:
        """Raise a validation error if a required field is blank or the URL is malformed."""
        if not self.name.strip():
            raise NameEmptyError()
        if not self.url.strip():
            raise URLEmptyError()
        if not is_valid_url(self.url):
            raise InvalidURLError(self.url)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict, dropping fields left at their default."""
        out: dict[str, Any] = {"name": self.name, "url": self.url}
        for f in fields(self):
            if f.name in out:
                continue
            value = getattr(self, f.name)
            if value != f.default:
                out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RepositoryConfig:
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs.setdefault("name", "")
        kwargs.setdefault("url", "")
        return cls(**kwargs)


def is_valid_url(url: str) -> bool:
    """Syntactic URL check: a supported scheme plus a host (or a path for file://)."""
    if any(c.isspace() for c in url):
        return False
    parsed = urlparse(url)
    if parsed.scheme not in SUPPORTED_SCHEMES:
        return False
    if parsed.scheme == "file":
        return bool(parsed.netloc or parsed.path)
    return bool(parsed.netloc)
