"""Tests for version comparison and latest-version selection."""

import pytest

from doc_index.schemas import SearchMetadata, SearchResult
from doc_index.version import compare, filter_latest_versions, find_latest, parse_version


@pytest.mark.parametrize(
    "v1, v2, expected",
    [
        ("1.0.0", "0.9.9", "gt"),
        ("0.9.9", "1.0.0", "lt"),
        ("1.10.0", "1.9.0", "gt"),
        ("2.0.0", "2.0.0", "eq"),
        ("1.0.0-alpha", "1.0.0", "lt"),
        ("1.0.0", "1.0.0-rc.1", "gt"),
        ("1.0.0+build.5", "1.0.0+build.9", "eq"),
        ("latest", "3.1.4", "eq"),
        ("0.0.1", "latest", "eq"),
    ],
)
def test_compare(v1, v2, expected):
    """Test SemVer ordering of common version pairs."""
    assert compare(v1, v2) == expected


def test_pre_release_precedence():
    """Test the pre-release ordering from the SemVer 2.0 example."""
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
    ]
    for lower, higher in zip(ordered, ordered[1:]):
        assert compare(lower, higher) == "lt"
        assert compare(higher, lower) == "gt"


def test_compare_falls_back_to_release_part():
    """Test versions with a non-SemVer suffix compare by their release part."""
    assert parse_version("1.2.3-dev_build") == ((1, 2, 3), ())
    assert compare("1.2.3-dev_build", "1.2.3") == "eq"
    assert compare("1.2.4-dev_build", "1.2.3") == "gt"


def test_compare_falls_back_to_string_order():
    """Test unparseable versions use plain string ordering."""
    assert parse_version("main") is None
    assert compare("main", "develop") == "gt"
    assert compare("1.0", "1.1") == "lt"


def test_find_latest():
    """Test picking the highest version."""
    assert find_latest(["1.0.0", "2.0.0-rc.1", "1.5.0"]) == "2.0.0-rc.1"
    assert find_latest(["0.1.0"]) == "0.1.0"


def test_find_latest_edge_cases():
    """Test empty input and the latest sentinel."""
    assert find_latest([]) is None
    assert find_latest(["latest"]) == "latest"
    assert find_latest(["latest", "1.0.0"]) == "1.0.0"
    assert find_latest(["1.0.0", "latest", "0.9.0"]) == "1.0.0"


def test_find_latest_first_maximal_wins():
    """Test ties keep the first equal element."""
    assert find_latest(["1.0.0+a", "1.0.0+b"]) == "1.0.0+a"


def _result(package, version, score=0.0, id=1):
    return SearchResult(
        score=score,
        metadata=SearchMetadata(id=id, package=package, version=version, source_file="a.md", text="t"),
    )


def test_filter_latest_versions_keeps_all_latest_results():
    """Test every result of each package's latest version survives."""
    results = [
        _result("requests", "2.31.0", id=1),
        _result("requests", "2.32.0", id=2),
        _result("httpx", "0.27.0", id=3),
        _result("requests", "2.32.0", id=4),
        _result("httpx", "0.26.0", id=5),
    ]

    filtered = filter_latest_versions(results)

    assert [r.metadata.id for r in filtered] == [2, 4, 3]


def test_filter_latest_versions_with_mappings():
    """Test plain dict results are accepted."""
    results = [
        {"score": 0.1, "metadata": {"package": "a", "version": "1.0.0"}},
        {"score": 0.2, "metadata": {"package": "a", "version": "1.1.0"}},
    ]

    assert filter_latest_versions(results) == [results[1]]
    assert filter_latest_versions([]) == []
