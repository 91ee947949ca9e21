from __future__ import annotations

import pytest

from repman.build.version_manager import is_outdated, rpmvercmp, vercmp


@pytest.mark.parametrize(
    "older,newer",
    [
        ("1.0-1", "1.0-2"),
        ("1.0-1", "1.1-1"),
        ("1.9-1", "1.10-1"),
        ("1.0a-1", "1.0-1"),
        ("1.0-1", "1.0.1-1"),
        ("1.0rc1-1", "1.0-1"),
        ("2.0-1", "1:1.0-1"),
        ("1:1.0-1", "2:0.1-1"),
        ("0.9.9-1", "1.0-1"),
    ],
)
def test_vercmp_orders_versions(older: str, newer: str) -> None:
    assert vercmp(older, newer) == -1
    assert vercmp(newer, older) == 1


def test_vercmp_equal_versions() -> None:
    assert vercmp("1.0-1", "1.0-1") == 0
    assert vercmp("1.0", "1.0-5") == 0
    assert vercmp("0:1.0-1", "1.0-1") == 0


def test_rpmvercmp_ignores_leading_zeros() -> None:
    assert rpmvercmp("1.01", "1.1") == 0
    assert rpmvercmp("1.001", "1.1") == 0


def test_is_outdated() -> None:
    assert is_outdated("1.2.3-1", "1.2.4-1")
    assert not is_outdated("1.2.4-1", "1.2.4-1")
    assert not is_outdated("1.3-1", "1.2.4-1")


@pytest.mark.parametrize(
    "a,b,expected",
    [
        # mixed length and pkgrel inclusion
        ("1.5.1", "1.5", 1),
        ("1.5-1", "1.5.1-1", -1),
        ("1.5", "1.5-1", 0),
        ("1.1-1", "1.1", 0),
        # alphanumeric
        ("1.5b-1", "1.5-1", -1),
        ("1.5b", "1.5.1", -1),
        ("1.0a", "1.0alpha", -1),
        ("1.0alpha", "1.0b", -1),
        ("1.0beta", "1.0rc", -1),
        ("1.0rc", "1.0", -1),
        # alpha-dotted
        ("1.5.a", "1.5", 1),
        ("1.5.b", "1.5.a", 1),
        ("1.5.1", "1.5.b", 1),
        ("1.5.b-1", "1.5.b", 0),
        ("1.5-1", "1.5.b", -1),
        # differing separators
        ("2.0", "2_0", 0),
        ("2.0_a", "2_0.a", 0),
        ("2.0a", "2.0.a", -1),
        ("2___a", "2_a", 1),
        # epochs with and without pkgrel
        ("0:1.0", "1.0", 0),
        ("1:1.0", "0:1.0-1", 1),
        ("1:1.0-1", "0:1.1-1", 1),
        ("1:1.1", "1.11", 1),
        ("1:1.0", "2:1.1", -1),
    ],
)
def test_vercmp_matches_pacman(a: str, b: str, expected: int) -> None:
    assert vercmp(a, b) == expected
    assert vercmp(b, a) == -expected
