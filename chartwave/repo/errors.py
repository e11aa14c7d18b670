"""Repository registry errors.

Every error carries an ``ErrorKind`` so callers can test
``is_kind(exc, ErrorKind.NOT_FOUND)`` regardless of which call raised it.
"""

from __future__ import annotations

from chartwave.errors import ChartwaveError, ErrorKind


class RepositoryError(ChartwaveError):
    """Base class for repository registry errors."""


class NameEmptyError(RepositoryError):
    kind = ErrorKind.VALIDATION

    def __init__(self) -> None:
        super().__init__("repository name is empty")


class URLEmptyError(RepositoryError):
    kind = ErrorKind.VALIDATION

    def __init__(self) -> None:
        super().__init__("repository url is empty")


class InvalidURLError(RepositoryError):
    kind = ErrorKind.VALIDATION

    def __init__(self, url: str) -> None:
        super().__init__(f"invalid URL: {url}")
        self.url = url


class DuplicateError(RepositoryError):
    kind = ErrorKind.DUPLICATE

    def __init__(self, name: str) -> None:
        super().__init__(f"repository duplicate: {name}")
        self.name = name


class NotFoundError(RepositoryError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"repository not found: {name}")
        self.name = name
