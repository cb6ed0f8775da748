"""Multi-part version ordering for manifest version directories.

Versions are split on ``.``; each part is a leading integer plus an optional
text suffix (``2-beta`` -> ``(2, "-beta")``). Parts compare numerically first,
then by suffix, where a part without a suffix sorts after one with a suffix
(``1.0.0`` > ``1.0.0-rc``). Missing trailing parts count as zero, so ``1.0``
and ``1.0.0`` are equal.
"""

import re
from functools import cmp_to_key
from typing import Iterable

_PART_RE = re.compile(r"^(\d*)(.*)$")


def _parse(version: str) -> list[tuple[int, str]]:
    parts = []
    for raw in version.strip().split("."):
        match = _PART_RE.match(raw.strip())
        digits, other = match.group(1), match.group(2)
        parts.append((int(digits) if digits else 0, other.strip()))
    # Trailing zero parts carry no ordering information
    while parts and parts[-1] == (0, ""):
        parts.pop()
    return parts


def _compare_part(a: tuple[int, str], b: tuple[int, str]) -> int:
    if a[0] != b[0]:
        return -1 if a[0] < b[0] else 1
    a_other, b_other = a[1].lower(), b[1].lower()
    if a_other == b_other:
        return 0
    if not a_other:
        return 1
    if not b_other:
        return -1
    return -1 if a_other < b_other else 1


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as version a sorts before, equal to, or after b."""
    a_parts, b_parts = _parse(a), _parse(b)
    for i in range(max(len(a_parts), len(b_parts))):
        a_part = a_parts[i] if i < len(a_parts) else (0, "")
        b_part = b_parts[i] if i < len(b_parts) else (0, "")
        result = _compare_part(a_part, b_part)
        if result:
            return result
    return 0


version_key = cmp_to_key(compare_versions)


def latest_version(versions: Iterable[str]) -> str | None:
    """Greatest version by multi-part comparison, or None when empty."""
    versions = list(versions)
    if not versions:
        return None
    return max(versions, key=version_key)
