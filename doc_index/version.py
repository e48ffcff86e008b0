"""Semantic version comparison for package documentation versions."""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .schemas import LATEST_VERSION, metadata_field


GT = "gt"
LT = "lt"
EQ = "eq"

# SemVer 2.0: MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]
_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

ParsedVersion = Tuple[Tuple[int, int, int], Tuple[str, ...]]


def _parse(version: str) -> Optional[ParsedVersion]:
    match = _SEMVER_RE.match(version)
    if not match:
        return None
    major, minor, patch, pre, _build = match.groups()
    pre_parts = tuple(pre.split(".")) if pre else ()
    return (int(major), int(minor), int(patch)), pre_parts


def parse_version(version: str) -> Optional[ParsedVersion]:
    """
    Parse a version string, retrying without any ``-suffix`` on failure.

    Returns:
        (release, pre_release) tuple, or None if neither form parses
    """
    parsed = _parse(version)
    if parsed is not None:
        return parsed
    return _parse(version.split("-", 1)[0])


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _compare_identifier(a: str, b: str) -> int:
    # Numeric identifiers sort below alphanumeric ones
    if a.isdigit() and b.isdigit():
        return _cmp(int(a), int(b))
    if a.isdigit():
        return -1
    if b.isdigit():
        return 1
    return _cmp(a, b)


def _compare_pre_release(a: Tuple[str, ...], b: Tuple[str, ...]) -> int:
    # A release ranks above any of its pre-releases
    if not a and not b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    for left, right in zip(a, b):
        result = _compare_identifier(left, right)
        if result:
            return result
    return _cmp(len(a), len(b))


def _to_label(result: int) -> str:
    if result > 0:
        return GT
    if result < 0:
        return LT
    return EQ


def compare(v1: str, v2: str) -> str:
    """
    Compare two version strings.

    ``"latest"`` compares equal to anything. Strings that cannot be parsed
    as semantic versions fall back to plain string ordering.

    Returns:
        "gt", "lt" or "eq"
    """
    if v1 == LATEST_VERSION or v2 == LATEST_VERSION or v1 == v2:
        return EQ

    parsed1 = parse_version(v1)
    parsed2 = parse_version(v2)
    if parsed1 is None or parsed2 is None:
        return _to_label(_cmp(v1, v2))

    result = _cmp(parsed1[0], parsed2[0]) or _compare_pre_release(parsed1[1], parsed2[1])
    return _to_label(result)


def _sort_key(v1: str, v2: str) -> int:
    return {GT: 1, LT: -1, EQ: 0}[compare(v1, v2)]


def find_latest(versions: Iterable[str]) -> Optional[str]:
    """
    Pick the latest version from a list.

    The first maximal element wins on ties. ``"latest"`` is only returned
    when it is the sole entry.
    """
    versions = list(versions)
    if not versions:
        return None
    if versions == [LATEST_VERSION]:
        return LATEST_VERSION

    candidates = [version for version in versions if version != LATEST_VERSION]
    if not candidates:
        return None
    return max(candidates, key=cmp_to_key(_sort_key))


def filter_latest_versions(results: List[Any]) -> List[Any]:
    """
    Keep only results belonging to each package's latest version.

    Every result of the latest version is kept, not just one per package.
    Packages keep the order of their first appearance.
    """
    by_package: Dict[Any, Dict[Any, List[Any]]] = {}
    for result in results:
        package = metadata_field(result, "package")
        version = metadata_field(result, "version")
        by_package.setdefault(package, {}).setdefault(version, []).append(result)

    filtered: List[Any] = []
    for by_version in by_package.values():
        latest = find_latest(by_version.keys())
        filtered.extend(by_version.get(latest, []))
    return filtered
