"""Release branch naming and ordering."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable

_VERSION_PART_RE = re.compile(r"\d+|[^\d.\-_]+")


def _version_key(branch: str) -> list[tuple[int, int, str]]:
    key: list[tuple[int, int, str]] = []
    for part in _VERSION_PART_RE.findall(branch):
        if part.isdigit():
            key.append((1, int(part), ""))
        else:
            key.append((0, 0, part))
    return key


def sort_release_branches(branches: list[str]) -> None:
    """Sort in place, newest version first (``release-19.1`` before ``release-2.1``)."""
    branches.sort(key=_version_key, reverse=True)


def filter_release_branches(names: Iterable[str], pattern: str) -> list[str]:
    matched = [name.strip().lstrip("* ").strip() for name in names]
    matched = [name for name in matched if name and fnmatch.fnmatchcase(name, pattern)]
    sort_release_branches(matched)
    return matched
