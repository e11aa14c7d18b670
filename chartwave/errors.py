"""Error taxonomy shared by every chartwave component.

Callers branch on an error's *kind*, never on the concrete instance or its
message.  ``is_kind`` follows ``__cause__`` / ``__context__`` so that an error
wrapped with ``raise ... from exc`` still matches the kind of its cause.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Distinguishable error categories."""

    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    RESOLUTION = "resolution"
    LOAD = "load"
    DEPENDENCY = "dependency"
    EXPORT = "export"
    PLAN = "plan"


class ChartwaveError(Exception):
    """Base class for every error raised by chartwave."""

    kind: ErrorKind = ErrorKind.PLAN


def error_kinds(exc: BaseException) -> list[ErrorKind]:
    """Return the kinds found along the exception chain, outermost first."""
    kinds: list[ErrorKind] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ChartwaveError):
            kinds.append(current.kind)
        current = current.__cause__ or current.__context__
    return kinds


def is_kind(exc: BaseException, kind: ErrorKind) -> bool:
    """Return True if *exc* or anything it wraps is of *kind*."""
    return kind in error_kinds(exc)


# ---------------------------------------------------------------------------
# Chart errors
# ---------------------------------------------------------------------------


class UnknownFormatError(ChartwaveError):
    """A chart reference is neither a scalar nor a mapping."""

    kind = ErrorKind.VALIDATION

    def __init__(self, value: str, line: int) -> None:
        super().__init__(f"failed to decode chart {value!r} from YAML at {line} line: unknown format")
        self.value = value
        self.line = line


class ChartNameEmptyError(ChartwaveError):
    """A decoded chart reference has no name."""

    kind = ErrorKind.VALIDATION

    def __init__(self, line: int | None = None) -> None:
        where = f" at {line} line" if line is not None else ""
        super().__init__(f"chart name is empty{where}")
        self.line = line


class ChartLocateError(ChartwaveError):
    """A chart could not be found locally or downloaded."""

    kind = ErrorKind.RESOLUTION

    def __init__(self, chart: str, reason: str = "") -> None:
        msg = f"failed to locate chart {chart}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.chart = chart


class ChartLoadError(ChartwaveError):
    """A located chart is unreadable or malformed."""

    kind = ErrorKind.LOAD

    def __init__(self, chart: str, reason: str = "") -> None:
        msg = f"failed to load chart {chart}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.chart = chart


class ChartDependencyError(ChartwaveError):
    """A chart declares dependencies that are not vendored."""

    kind = ErrorKind.DEPENDENCY

    def __init__(self, chart: str, missing: list[str]) -> None:
        super().__init__(
            f"failed to check chart {chart} dependencies: found in Chart.yaml, "
            f"but missing in charts/ directory: {', '.join(missing)}"
        )
        self.chart = chart
        self.missing = missing


class DependencyUpdateError(ChartwaveError):
    """Downloading a chart's dependencies failed."""

    kind = ErrorKind.DEPENDENCY

    def __init__(self, chart: str, reason: str = "") -> None:
        msg = f"failed to update {chart} chart dependencies"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.chart = chart


class ChartExportError(ChartwaveError):
    """Copying a chart into the plan directory failed."""

    kind = ErrorKind.EXPORT

    def __init__(self, chart: str, reason: str = "") -> None:
        msg = f"failed to export chart {chart}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.chart = chart


# ---------------------------------------------------------------------------
# Plan errors
# ---------------------------------------------------------------------------


class DuplicateReleaseError(ChartwaveError):
    """Two releases share the same name and namespace."""

    kind = ErrorKind.DUPLICATE

    def __init__(self, unique_name: str) -> None:
        super().__init__(f"release duplicate: {unique_name}")
        self.unique_name = unique_name


class DeclarationError(ChartwaveError):
    """The release declaration document is malformed."""

    kind = ErrorKind.VALIDATION


class PlanNotFoundError(ChartwaveError):
    """No planfile exists in the plan directory."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, path: str) -> None:
        super().__init__(f"planfile not found: {path}")
        self.path = path


class ManifestRenderError(ChartwaveError):
    """Rendering a release's manifest failed."""

    kind = ErrorKind.PLAN

    def __init__(self, release: str, reason: str = "") -> None:
        msg = f"failed to render manifest of {release}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.release = release


class PlanExportError(ChartwaveError):
    """Writing or swapping in the plan directory failed."""

    kind = ErrorKind.EXPORT

    def __init__(self, path: str, reason: str = "") -> None:
        msg = f"failed to export plan to {path}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.path = path


class ManifestParseError(ChartwaveError):
    """A rendered or stored manifest is not valid YAML."""

    kind = ErrorKind.VALIDATION

    def __init__(self, source: str, reason: str = "") -> None:
        msg = f"failed to parse manifest of {source}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.source = source
