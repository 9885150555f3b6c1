"""Structural version model.

A version string is split on ``.``, ``-`` and ``_`` into elements. Each
element remembers what kind of characters it holds and which divider ended
it, which is all the compatibility strategies need to judge two versions
without assuming any particular versioning scheme.
"""
from __future__ import annotations

import enum
import functools
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from errors import InvalidVersionError

_SPLIT_RE = re.compile(r"([-._])")


class Divider(enum.Enum):
    """Character that terminated a version element."""

    DOT = "."
    MINUS = "-"
    UNDERSCORE = "_"
    OTHER = "?"
    END_OF_VERSION = ""

    @classmethod
    def for_char(cls, char: str) -> "Divider":
        if not char:
            return cls.END_OF_VERSION
        for member in (cls.DOT, cls.MINUS, cls.UNDERSCORE):
            if member.value == char:
                return member
        return cls.OTHER


class ElementFlag(enum.IntFlag):
    """Character classes found in a version element."""

    ALL_NUMBERS = enum.auto()
    ALL_LETTERS = enum.auto()
    ALL_OTHER = enum.auto()
    STARTS_WITH_NUMBERS = enum.auto()
    STARTS_WITH_LETTERS = enum.auto()
    STARTS_WITH_OTHER = enum.auto()
    ENDS_WITH_NUMBERS = enum.auto()
    ENDS_WITH_LETTERS = enum.auto()
    ENDS_WITH_OTHER = enum.auto()
    NUMBERS = enum.auto()
    LETTERS = enum.auto()
    OTHER = enum.auto()


def _char_class(char: str) -> str:
    if char.isdecimal():
        return "numbers"
    if char.isalpha():
        return "letters"
    return "other"


_ALL = {"numbers": ElementFlag.ALL_NUMBERS, "letters": ElementFlag.ALL_LETTERS,
        "other": ElementFlag.ALL_OTHER}
_STARTS = {"numbers": ElementFlag.STARTS_WITH_NUMBERS, "letters": ElementFlag.STARTS_WITH_LETTERS,
           "other": ElementFlag.STARTS_WITH_OTHER}
_ENDS = {"numbers": ElementFlag.ENDS_WITH_NUMBERS, "letters": ElementFlag.ENDS_WITH_LETTERS,
         "other": ElementFlag.ENDS_WITH_OTHER}
_ANY = {"numbers": ElementFlag.NUMBERS, "letters": ElementFlag.LETTERS,
        "other": ElementFlag.OTHER}


def classify(text: str) -> ElementFlag:
    """Compute the character-class flags for one element's text."""
    if not text:
        return ElementFlag(0)
    classes = [_char_class(c) for c in text]
    flags = _STARTS[classes[0]] | _ENDS[classes[-1]]
    seen = set(classes)
    for kind in seen:
        flags |= _ANY[kind]
    if len(seen) == 1:
        flags |= _ALL[classes[0]]
    return flags


@dataclass(frozen=True)
class VersionElement:
    """One non-blank token of a version string and the divider that followed it."""

    text: str
    flags: ElementFlag
    divider: Divider
    divider_char: str = ""

    @classmethod
    def create(cls, text: str, divider_char: str) -> "VersionElement":
        return cls(text=text, flags=classify(text), divider=Divider.for_char(divider_char),
                   divider_char=divider_char)

    @property
    def is_number(self) -> bool:
        return bool(self.flags & ElementFlag.ALL_NUMBERS)

    @property
    def has_numbers(self) -> bool:
        return bool(self.flags & ElementFlag.NUMBERS)

    @property
    def has_letters(self) -> bool:
        return bool(self.flags & ElementFlag.LETTERS)

    @property
    def has_dot(self) -> bool:
        return self.divider is Divider.DOT

    @property
    def is_end_of_version(self) -> bool:
        return self.divider is Divider.END_OF_VERSION

    @property
    def number(self) -> int:
        """Integer formed by the digit characters only; 0 when there are none."""
        digits = "".join(c for c in self.text if c.isdecimal())
        return int(digits) if digits else 0

    def __str__(self) -> str:
        return self.text + self.divider_char


def _tokenize(value: str) -> List[Tuple[str, str]]:
    """Split on every divider, keeping empty tokens, paired with the next divider."""
    parts = _SPLIT_RE.split(value)
    tokens = parts[0::2]
    dividers = parts[1::2] + [""]
    return list(zip(tokens, dividers))


@functools.total_ordering
class Version:
    """A parsed version.

    ``raw_version`` is what was asked for (possibly a range specification),
    ``selected_version`` is the concrete version the elements are parsed
    from. Equality, hashing and ordering use the selected string only.
    """

    __slots__ = ("raw_version", "selected_version", "raw_elements", "elements")

    def __init__(self, raw_version: str, selected_version: Optional[str] = None):
        if selected_version is None:
            selected_version = raw_version
        if not isinstance(raw_version, str) or not raw_version.strip():
            raise InvalidVersionError(f"Version cannot be empty: {raw_version!r}")
        if not isinstance(selected_version, str) or not selected_version.strip():
            raise InvalidVersionError(f"Selected version cannot be empty: {selected_version!r}")

        self.raw_version = raw_version
        self.selected_version = selected_version
        self.raw_elements: Tuple[Tuple[str, str], ...] = tuple(_tokenize(selected_version))
        kept = [(token.strip(), divider) for token, divider in self.raw_elements if token.strip()]
        if kept:
            # the last element always ends the version, even before a trailing divider
            kept[-1] = (kept[-1][0], "")
        elements = [VersionElement.create(text, divider_char) for text, divider_char in kept]
        self.elements: Tuple[VersionElement, ...] = tuple(elements)

    def serialize(self) -> str:
        """Rebuild the selected string from all tokens and their dividers."""
        return "".join(token + divider for token, divider in self.raw_elements)

    def numeric_prefix(self) -> Tuple[Tuple[int, ...], Optional[str]]:
        """Split into the leading dotted numbers and the remaining qualifier.

        ``"1.2.3-beta"`` gives ``((1, 2, 3), "beta")``; a version that does
        not start with a digit gives ``((), selected_version)``.
        """
        match = re.match(r"[0-9.]*[0-9]", self.selected_version)
        if not match:
            return (), self.selected_version
        numbers = tuple(int(part) for part in match.group(0).split(".") if part)
        rest = self.selected_version[match.end():]
        if rest[:1] in ("-", "_", "."):
            rest = rest[1:]
        return numbers, (rest or None)

    def is_higher_than_or_equal(self, other: "Version") -> bool:
        mine, qualifier = self.numeric_prefix()
        theirs, other_qualifier = other.numeric_prefix()
        if not mine:
            return not theirs and qualifier == other_qualifier
        if not theirs:
            return False
        for left, right in zip(mine, theirs):
            if left != right:
                return left > right
        return len(mine) >= len(theirs)

    def has_higher_major_version(self, other: "Version") -> bool:
        mine, _ = self.numeric_prefix()
        theirs, _ = other.numeric_prefix()
        if not mine or not theirs:
            return False
        return mine[0] > theirs[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.selected_version == other.selected_version

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.selected_version < other.selected_version

    def __hash__(self) -> int:
        return hash(self.selected_version)

    def __str__(self) -> str:
        return self.selected_version

    def __repr__(self) -> str:
        if self.raw_version == self.selected_version:
            return f"Version({self.selected_version!r})"
        return f"Version({self.raw_version!r}, {self.selected_version!r})"


def parse_version(raw_version: str, selected_version: Optional[str] = None) -> Version:
    return Version(raw_version, selected_version)


def compare_selected(left: Version, right: Version) -> int:
    """Plain string ordering of the selected versions, for sorting only."""
    if left.selected_version < right.selected_version:
        return -1
    if left.selected_version > right.selected_version:
        return 1
    return 0
