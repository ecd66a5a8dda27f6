"""Word-level text diff used to render reviewer edits.

Both strings are split on whitespace with the whitespace runs kept as their
own tokens, so joining a side's segments reproduces that side exactly.
"""

import enum
import re
from dataclasses import dataclass

_TOKEN_RE = re.compile(r"(\s+)")


class SegmentType(enum.Enum):
    unchanged = "unchanged"
    added = "added"
    removed = "removed"


@dataclass(frozen=True)
class DiffSegment:
    type: SegmentType
    text: str


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.split(text)


def _lcs_table(old: list[str], new: list[str]) -> list[list[int]]:
    # dp[i][j] = LCS length of old[i:] and new[j:]
    dp = [[0] * (len(new) + 1) for _ in range(len(old) + 1)]
    for i in range(len(old) - 1, -1, -1):
        for j in range(len(new) - 1, -1, -1):
            if old[i] == new[j]:
                dp[i][j] = dp[i + 1][j + 1] + 1
            else:
                dp[i][j] = max(dp[i + 1][j], dp[i][j + 1])
    return dp


def _coalesce(pieces: list[tuple[SegmentType, str]]) -> list[DiffSegment]:
    merged: list[list] = []
    for seg_type, text in pieces:
        if merged and merged[-1][0] is seg_type:
            merged[-1][1] += text
        else:
            merged.append([seg_type, text])
    return [DiffSegment(seg_type, text) for seg_type, text in merged]


def diff(original: str, modified: str) -> list[DiffSegment]:
    original = original or ""
    modified = modified or ""
    if original == modified:
        return [DiffSegment(SegmentType.unchanged, original)]
    if not original:
        return [DiffSegment(SegmentType.added, modified)]
    if not modified:
        return [DiffSegment(SegmentType.removed, original)]

    old = tokenize(original)
    new = tokenize(modified)
    dp = _lcs_table(old, new)

    pieces: list[tuple[SegmentType, str]] = []
    i = j = 0
    while i < len(old) and j < len(new):
        if old[i] == new[j]:
            pieces.append((SegmentType.unchanged, old[i]))
            i += 1
            j += 1
        elif dp[i + 1][j] >= dp[i][j + 1]:
            # Ties consume the original token first
            pieces.append((SegmentType.removed, old[i]))
            i += 1
        else:
            pieces.append((SegmentType.added, new[j]))
            j += 1
    pieces.extend((SegmentType.removed, token) for token in old[i:])
    pieces.extend((SegmentType.added, token) for token in new[j:])

    return _coalesce(pieces)


def reconstruct(segments: list[DiffSegment], side: str = "original") -> str:
    """Rebuild one side of a diff: ``"original"`` or ``"modified"``."""
    skip = SegmentType.added if side == "original" else SegmentType.removed
    return "".join(seg.text for seg in segments if seg.type is not skip)
