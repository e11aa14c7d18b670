"""Tag normalisation and release filtering."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chartwave.release.config import ReleaseConfig


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Strip whitespace and sort.

    [" c", "b ", "a"] -> ["a", "b", "c"].  Idempotent and independent of input order.
    Blank tags are kept: [" "] normalises to [""], a filter nothing matches
    unless a release declares an empty tag.
    """
    return sorted(t.strip() for t in tags)


def filter_releases(
    releases: Iterable[ReleaseConfig],
    tags: list[str],
    match_all: bool = False,
) -> list[ReleaseConfig]:
    """Keep releases matching *tags*, preserving declaration order.

    An empty tag list keeps everything.  Without *match_all* a release needs
    any one of the tags; with it, every tag.
    """
    if not tags:
        return list(releases)
    if match_all:
        return [r for r in releases if r.has_all_tags(tags)]
    return [r for r in releases if r.has_any_tag(tags)]
