"""Maven version ordering and version range matching.

Maven versions are not PEP 440 (``4.3.3.RELEASE``, ``1.0-rc1``), so ordering
follows Maven's own rules: numeric items compare numerically, well-known
qualifiers (alpha < beta < milestone < rc < snapshot < release < sp) compare
by rank and anything else sorts after them lexically.
"""
from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

_TOKEN = re.compile(r"\d+|[a-z]+")

_QUALIFIER_RANKS = {
    "alpha": 0, "a": 0,
    "beta": 1, "b": 1,
    "milestone": 2, "m": 2,
    "rc": 3, "cr": 3,
    "snapshot": 4,
    "ga": 5, "final": 5, "release": 5,
    "sp": 6,
}
_RELEASE_RANK = 5

Item = Tuple[int, int, str]

# Stands in for missing trailing items when versions of different length meet.
_RELEASE: Item = (1, _RELEASE_RANK, "")
_ZERO: Item = (2, 0, "")


def _items(text: str) -> List[Item]:
    items: List[Item] = []
    for token in _TOKEN.findall(text.lower()):
        if token.isdigit():
            items.append((2, int(token), ""))
            continue
        # 1.0-rc1 and 1-rc1 are the same version
        while items and items[-1] == _ZERO:
            items.pop()
        rank = _QUALIFIER_RANKS.get(token)
        if rank is None:
            items.append((1, 7, token))
        elif rank < _RELEASE_RANK:
            items.append((0, rank, ""))
        else:
            items.append((1, rank, ""))
    while items and items[-1] in (_RELEASE, _ZERO):
        items.pop()
    return items


@functools.total_ordering
class MavenVersion:
    """A comparable Maven version."""

    def __init__(self, text: str) -> None:
        self.text = text.strip()
        self._items = _items(self.text)

    def _padded(self, other: "MavenVersion"):
        length = max(len(self._items), len(other._items))
        mine = self._items + [_RELEASE] * (length - len(self._items))
        theirs = other._items + [_RELEASE] * (length - len(other._items))
        return mine, theirs

    def __eq__(self, other) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        mine, theirs = self._padded(other)
        return mine == theirs

    def __lt__(self, other) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        mine, theirs = self._padded(other)
        return mine < theirs

    def __hash__(self) -> int:
        return hash(tuple(self._items))

    def __repr__(self) -> str:
        return f"MavenVersion({self.text!r})"

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Restriction:
    """One bracketed interval of a version range; None bounds are open."""
    lower: Optional[MavenVersion]
    lower_inclusive: bool
    upper: Optional[MavenVersion]
    upper_inclusive: bool

    def contains(self, version: MavenVersion) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True


def _split_intervals(spec: str) -> List[str]:
    """Split ``[1.0,2.0),[3.0,)`` into its bracketed intervals."""
    intervals: List[str] = []
    current = ""
    depth = 0
    for char in spec:
        if char in "[(":
            if depth == 0:
                current = ""
            depth += 1
            current += char
        elif char in "])":
            depth -= 1
            current += char
            if depth == 0:
                intervals.append(current)
                current = ""
        elif depth > 0:
            current += char
    if depth != 0:
        raise ValueError(f"Unbalanced version range '{spec}'")
    return intervals


def parse_range(spec: str) -> List[Restriction]:
    """Parse a Maven version range into its restrictions.

    Raises:
        ValueError: If the range is malformed.
    """
    restrictions: List[Restriction] = []
    for interval in _split_intervals(spec.strip()):
        inner = interval[1:-1]
        lower_inclusive = interval.startswith("[")
        upper_inclusive = interval.endswith("]")
        if "," not in inner:
            if not inner.strip() or not (lower_inclusive and upper_inclusive):
                raise ValueError(f"Invalid version range '{interval}'")
            exact = MavenVersion(inner)
            restrictions.append(Restriction(exact, True, exact, True))
            continue
        lower_text, upper_text = (part.strip() for part in inner.split(",", 1))
        restrictions.append(
            Restriction(
                MavenVersion(lower_text) if lower_text else None,
                lower_inclusive,
                MavenVersion(upper_text) if upper_text else None,
                upper_inclusive,
            )
        )
    if not restrictions:
        raise ValueError(f"Invalid version range '{spec}'")
    return restrictions


def is_range(spec: str) -> bool:
    return spec.strip()[:1] in ("[", "(")


def matches(spec: str, version: str) -> bool:
    """Whether ``version`` satisfies ``spec`` (a range or a plain version)."""
    if not is_range(spec):
        return MavenVersion(spec) == MavenVersion(version)
    candidate = MavenVersion(version)
    return any(r.contains(candidate) for r in parse_range(spec))


def select_highest(spec: str, candidates: Iterable[str]) -> Optional[str]:
    """Highest candidate matching ``spec``.

    Snapshot candidates only qualify when the range itself names a snapshot.
    """
    allow_snapshots = "snapshot" in spec.lower()
    restrictions = parse_range(spec) if is_range(spec) else None
    best: Optional[MavenVersion] = None
    for text in candidates:
        if not allow_snapshots and text.upper().endswith("-SNAPSHOT"):
            continue
        version = MavenVersion(text)
        if restrictions is not None:
            if not any(r.contains(version) for r in restrictions):
                continue
        elif version != MavenVersion(spec):
            continue
        if best is None or version > best:
            best = version
    return best.text if best is not None else None
