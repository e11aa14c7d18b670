"""Repository registry: named chart sources with uniqueness and validity checks."""

from chartwave.repo.config import RepositoryConfig, is_valid_url
from chartwave.repo.errors import (
    DuplicateError,
    InvalidURLError,
    NameEmptyError,
    NotFoundError,
    RepositoryError,
    URLEmptyError,
)
from chartwave.repo.registry import RepositoryRegistry, load_helm_repositories

__all__ = [
    "DuplicateError",
    "InvalidURLError",
    "NameEmptyError",
    "NotFoundError",
    "RepositoryConfig",
    "RepositoryError",
    "RepositoryRegistry",
    "URLEmptyError",
    "is_valid_url",
    "load_helm_repositories",
]
