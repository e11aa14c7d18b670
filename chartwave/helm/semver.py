"""Minimal semantic-version constraint matching for chart versions.

Supports the constraint forms charts use in practice: exact versions,
wildcards (``1.2.x``, ``1.*``), ``^`` and ``~`` ranges, comparison operators
(``>=1.0 <2.0`` or ``>=1.0, <2.0``) and ``||`` alternatives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)
_TERM_RE = re.compile(r"^(?P<op>\^|~|>=|<=|!=|>|<|=)?\s*(?P<ver>\S+)$")
_WILDCARDS = {"x", "X", "*"}


@dataclass(frozen=True, order=True)
class Version:
    major: int
    minor: int
    patch: int
    # Releases sort after pre-releases of the same triple.
    release: bool = True
    pre: str = field(default="", compare=False)
    pre_key: tuple[tuple[int, int, str], ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pre_key", _prerelease_key(self.pre))

    @property
    def is_prerelease(self) -> bool:
        return not self.release

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.pre}" if self.pre else base


def _prerelease_key(pre: str) -> tuple[tuple[int, int, str], ...]:
    """Precedence key of dot-separated pre-release identifiers.

    Numeric identifiers compare numerically and sort before alphanumeric
    ones, so alpha.2 < alpha.10 < alpha.beta.
    """
    if not pre:
        return ()
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in pre.split("."))


def parse_version(text: str) -> Version | None:
    """Parse *text* as a version; missing minor/patch default to 0.  None if unparsable."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    pre = m.group("pre") or ""
    return Version(
        major=int(m.group("major")),
        minor=int(m.group("minor") or 0),
        patch=int(m.group("patch") or 0),
        release=not pre,
        pre=pre,
    )


def is_constraint(text: str) -> bool:
    """True if *text* is a range rather than a single exact version."""
    return parse_version(text) is None


def _wildcard_bounds(ver: str) -> tuple[Version, Version | None] | None:
    parts = ver.lstrip("v").split(".")
    nums: list[int] = []
    for p in parts:
        if p in _WILDCARDS:
            break
        if not p.isdigit():
            return None
        nums.append(int(p))
    else:
        if len(nums) == 3:
            return None
    if not nums:
        return Version(0, 0, 0), None
    if len(nums) == 1:
        return Version(nums[0], 0, 0), Version(nums[0] + 1, 0, 0, release=False)
    return Version(nums[0], nums[1], 0), Version(nums[0], nums[1] + 1, 0, release=False)


def _term_matches(term: str, v: Version) -> bool:
    m = _TERM_RE.match(term)
    if m is None:
        raise ValueError(f"invalid version constraint: {term!r}")
    op = m.group("op") or "="
    ver = m.group("ver")

    bounds = _wildcard_bounds(ver) if op == "=" else None
    if bounds is not None:
        low, high = bounds
        return v >= low and (high is None or v < high)

    target = parse_version(ver)
    if target is None:
        raise ValueError(f"invalid version in constraint: {term!r}")

    if op == "=":
        return (v.major, v.minor, v.patch, v.pre) == (target.major, target.minor, target.patch, target.pre)
    if op == "!=":
        return (v.major, v.minor, v.patch, v.pre) != (target.major, target.minor, target.patch, target.pre)
    if op == ">":
        return v > target
    if op == ">=":
        return v >= target
    if op == "<":
        return v < target
    if op == "<=":
        return v <= target
    if op == "~":
        upper = Version(target.major, target.minor + 1, 0, release=False)
        return target <= v < upper
    # "^": compatible with the left-most non-zero component
    if target.major > 0:
        upper = Version(target.major + 1, 0, 0, release=False)
    elif target.minor > 0:
        upper = Version(0, target.minor + 1, 0, release=False)
    else:
        upper = Version(0, 0, target.patch + 1, release=False)
    return target <= v < upper


def _split_terms(group: str) -> list[str]:
    # ">= 1.0" -> ">=1.0"; terms separated by commas or whitespace
    group = re.sub(r"(\^|~|>=|<=|!=|>|<|=)\s+", r"\1", group)
    return [t for t in re.split(r"[,\s]+", group.strip()) if t]


def satisfies(version: str, constraint: str) -> bool:
    """Return True if *version* satisfies *constraint*.

    Pre-releases only match when the constraint itself names a pre-release.
    """
    v = parse_version(version)
    if v is None:
        return False
    if not constraint.strip():
        return v.release
    for group in constraint.split("||"):
        terms = _split_terms(group)
        if v.is_prerelease and not any("-" in t for t in terms):
            continue
        if terms and all(_term_matches(t, v) for t in terms):
            return True
    return False


def best_match(versions: list[str], constraint: str) -> str | None:
    """Return the highest version in *versions* satisfying *constraint*."""
    candidates = [(parse_version(v), v) for v in versions if satisfies(v, constraint)]
    if not candidates:
        return None
    return max(candidates, key=lambda pair: pair[0])[1]  # type: ignore[arg-type,return-value]
