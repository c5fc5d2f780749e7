"""
Version-aware ordering of snapshot names.

Numeric runs compare as numbers, so "2" < "9" < "10", matching GNU
`sort -V` for the names drsnap produces.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple, Union

_DIGITS = re.compile(r"(\d+)")

NaturalKey = Tuple[Tuple[Union[str, int], ...], str]


def natural_key(name: str) -> NaturalKey:
    """Sort key treating embedded digit runs as integers.

    re.split with a capturing group alternates text and digit runs, so the
    same position always holds the same type and keys stay comparable. The
    raw name breaks ties such as "01" vs "1".
    """
    parts = _DIGITS.split(name)
    return (
        tuple(int(part) if i % 2 else part for i, part in enumerate(parts)),
        name,
    )


def version_sorted(names: Iterable[str]) -> List[str]:
    """Names in ascending version-aware order."""
    return sorted(names, key=natural_key)
