"""
Version Manager - pacman version comparison

Python port of libalpm's ``alpm_pkg_vercmp`` (rpmvercmp on epoch, pkgver
and pkgrel) so comparisons do not depend on the host's ``vercmp`` binary.
"""

import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def _parse_evr(version: str) -> Tuple[str, str, Optional[str]]:
    """Split ``[epoch:]pkgver[-pkgrel]``"""
    epoch = "0"
    rest = version
    if ":" in rest:
        head, tail = rest.split(":", 1)
        if head.isdigit() or head == "":
            epoch = head or "0"
            rest = tail
    release = None
    if "-" in rest:
        rest, release = rest.rsplit("-", 1)
    return epoch, rest, release


def rpmvercmp(a: str, b: str) -> int:
    """Compare two version segments the way rpm does"""
    if a == b:
        return 0

    i = j = 0
    len_a, len_b = len(a), len(b)

    while i < len_a and j < len_b:
        # skip separators, remembering how many
        start_a, start_b = i, j
        while i < len_a and not a[i].isalnum():
            i += 1
        while j < len_b and not b[j].isalnum():
            j += 1

        if i >= len_a or j >= len_b:
            break

        if (i - start_a) != (j - start_b):
            return -1 if (i - start_a) < (j - start_b) else 1

        seg_start_a, seg_start_b = i, j
        if a[i].isdigit():
            while i < len_a and a[i].isdigit():
                i += 1
            while j < len_b and b[j].isdigit():
                j += 1
            is_num = True
        else:
            while i < len_a and a[i].isalpha():
                i += 1
            while j < len_b and b[j].isalpha():
                j += 1
            is_num = False

        seg_a = a[seg_start_a:i]
        seg_b = b[seg_start_b:j]

        if not seg_b:
            # numeric segments are newer than alpha ones
            return 1 if is_num else -1

        if is_num:
            seg_a = seg_a.lstrip("0")
            seg_b = seg_b.lstrip("0")
            if len(seg_a) != len(seg_b):
                return 1 if len(seg_a) > len(seg_b) else -1

        if seg_a != seg_b:
            return 1 if seg_a > seg_b else -1

    rest_a = a[i:]
    rest_b = b[j:]
    if not rest_a and not rest_b:
        return 0

    # "1.0" < "1.0.1" but "1.0a" < "1.0"
    if (not rest_a and not rest_b[:1].isalpha()) or rest_a[:1].isalpha():
        return -1
    return 1


def vercmp(a: str, b: str) -> int:
    """-1, 0 or 1 as ``a`` is older than, equal to or newer than ``b``"""
    if a == b:
        return 0
    epoch_a, ver_a, rel_a = _parse_evr(a)
    epoch_b, ver_b, rel_b = _parse_evr(b)

    ret = rpmvercmp(epoch_a, epoch_b)
    if ret == 0:
        ret = rpmvercmp(ver_a, ver_b)
        if ret == 0 and rel_a is not None and rel_b is not None:
            ret = rpmvercmp(rel_a, rel_b)
    return ret


def is_outdated(installed: str, candidate: str) -> bool:
    return vercmp(installed, candidate) < 0
