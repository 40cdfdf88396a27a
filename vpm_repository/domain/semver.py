"""
Lenient semantic-version parsing and ordering for package versions.
"""
from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Optional

_SEPARATORS = re.compile(r"[.\-]")


def _parse_number(token: str) -> Optional[int]:
    if not token or not token.isascii() or not token.isdigit():
        return None
    return int(token)


@dataclass(frozen=True, eq=False)
class SemVer:
    major: int
    minor: int
    patch: int
    label: str = ""

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["SemVer"]:
        """
        Parse ``major.minor.patch[-label][+build]``.

        Returns None when the text has fewer than three dot/dash separated
        tokens or when one of the numeric parts is not a non-negative integer.
        Everything from the start of the fourth token is kept verbatim as the
        label, minus any build metadata.
        """
        if not text:
            return None

        parts = _SEPARATORS.split(text, maxsplit=3)
        if len(parts) < 3:
            return None

        major_text, minor_text, patch_text = parts[0], parts[1], parts[2]
        label = parts[3] if len(parts) > 3 else ""

        # Build metadata glued to the patch number: everything after it is dropped.
        plus = patch_text.find("+")
        if plus > 0:
            patch_text = patch_text[:plus]
            label = ""

        if label:
            plus = label.find("+")
            if plus > 0:
                label = label[:plus]

        major = _parse_number(major_text)
        minor = _parse_number(minor_text)
        patch = _parse_number(patch_text)
        if major is None or minor is None or patch is None:
            return None

        return cls(major, minor, patch, label)

    def compare(self, other: "SemVer") -> int:
        for mine, theirs in (
            (self.major, other.major),
            (self.minor, other.minor),
            (self.patch, other.patch),
        ):
            if mine != theirs:
                return 1 if mine > theirs else -1

        # A release sorts above any of its pre-releases.
        if not self.label and other.label:
            return 1
        if self.label and not other.label:
            return -1

        mine_label = self.label.upper()
        theirs_label = other.label.upper()
        if mine_label == theirs_label:
            return 0
        return 1 if mine_label > theirs_label else -1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare(other) == 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.label.upper()))

    def __str__(self) -> str:
        if self.label:
            return f"{self.major}.{self.minor}.{self.patch}-{self.label}"
        return f"{self.major}.{self.minor}.{self.patch}"


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    """
    Compare two version strings, returning -1, 0 or 1.

    Unparseable versions compare equal to each other and below every valid
    version, so a malformed tag never aborts sorting.
    """
    left = SemVer.parse(a)
    right = SemVer.parse(b)
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1
    return left.compare(right)


version_sort_key = functools.cmp_to_key(compare_versions)
