"""Maven version specifications.

A bare version (``"1.0"``) is a soft requirement: it recommends ``1.0`` but
admits any version. Bracketed specs (``"[1.0,2.0)"``, ``"[1.2]"``,
``"(,1.0],[1.2,)"``) are hard ranges with no recommended version.

Bounds are ordered with ``packaging.version`` after mapping Maven spellings
onto PEP 440 (``1.0-SNAPSHOT`` becomes a dev release, ``.Final``/``.GA``
suffixes are dropped, unknown qualifiers become local labels).
"""
from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from packaging import version as pep440

from errors import InvalidVersionError

logger = logging.getLogger(__name__)

_RELEASE_SUFFIXES = (".release", ".final", ".ga", "-release", "-final", "-ga")
_LEADING_RELEASE = re.compile(r"^(\d+(?:\.\d+)*)[.\-_]?(.*)$")


@functools.lru_cache(maxsize=4096)
def comparable(value: str) -> pep440.Version:
    """Return an orderable key for a Maven version string.

    Raises:
        InvalidVersionError: if the string cannot be ordered at all.
    """
    normalized = value.strip().lower()
    if not normalized:
        raise InvalidVersionError("Empty version in version specification")
    for suffix in _RELEASE_SUFFIXES:
        if normalized.endswith(suffix):
            normalized = normalized[:-len(suffix)]
            break
    if normalized.endswith("-snapshot"):
        normalized = normalized[:-len("-snapshot")] + ".dev0"
    normalized = normalized.replace("-", ".").replace("_", ".")
    try:
        return pep440.Version(normalized)
    except pep440.InvalidVersion:
        pass

    match = _LEADING_RELEASE.match(normalized)
    if match and match.group(2):
        label = re.sub(r"[^a-z0-9]+", ".", match.group(2)).strip(".")
        try:
            return pep440.Version(f"{match.group(1)}+{label}")
        except pep440.InvalidVersion:
            pass
    raise InvalidVersionError(f"Cannot order version '{value}'")


def compare(left: str, right: str) -> int:
    a, b = comparable(left), comparable(right)
    return (a > b) - (a < b)


@dataclass(frozen=True)
class Restriction:
    """One interval of a version range; ``None`` bounds are unbounded."""

    lower: Optional[str] = None
    lower_inclusive: bool = False
    upper: Optional[str] = None
    upper_inclusive: bool = False

    def contains(self, candidate: str) -> bool:
        if self.lower is not None:
            order = compare(self.lower, candidate)
            if order > 0 or (order == 0 and not self.lower_inclusive):
                return False
        if self.upper is not None:
            order = compare(self.upper, candidate)
            if order < 0 or (order == 0 and not self.upper_inclusive):
                return False
        return True

    def __str__(self) -> str:
        if self.lower is not None and self.lower == self.upper:
            return f"[{self.lower}]"
        return "".join((
            "[" if self.lower_inclusive else "(",
            self.lower or "",
            ",",
            self.upper or "",
            "]" if self.upper_inclusive else ")",
        ))


EVERYTHING = Restriction()


def _parse_restriction(spec: str) -> Restriction:
    lower_inclusive = spec.startswith("[")
    upper_inclusive = spec.endswith("]")
    inner = spec[1:-1].strip()

    if "," not in inner:
        if not (lower_inclusive and upper_inclusive):
            raise InvalidVersionError(f"Single version must be surrounded by []: {spec}")
        if not inner:
            raise InvalidVersionError(f"Empty version in range: {spec}")
        return Restriction(inner, True, inner, True)

    lower_text, upper_text = (part.strip() for part in inner.split(",", 1))
    if lower_text == upper_text:
        raise InvalidVersionError(f"Range cannot have identical boundaries: {spec}")
    lower = lower_text or None
    upper = upper_text or None
    if lower is not None and upper is not None and compare(upper, lower) < 0:
        raise InvalidVersionError(f"Range defies version ordering: {spec}")
    return Restriction(lower, lower_inclusive, upper, upper_inclusive)


class VersionRange:
    """A parsed Maven version specification."""

    def __init__(self, spec: str, recommended_version: Optional[str],
                 restrictions: Tuple[Restriction, ...]):
        self.spec = spec
        self.recommended_version = recommended_version
        self.restrictions = restrictions

    @classmethod
    def from_spec(cls, spec: str) -> "VersionRange":
        """Parse a version specification.

        Raises:
            InvalidVersionError: for blank or malformed specifications.
        """
        if spec is None or not str(spec).strip():
            raise InvalidVersionError("Version specification cannot be empty")
        remaining = str(spec).strip()
        restrictions: List[Restriction] = []
        previous_upper: Optional[str] = None

        while remaining.startswith(("[", "(")):
            close_paren = remaining.find(")")
            close_bracket = remaining.find("]")
            index = close_bracket
            if close_bracket < 0 or 0 <= close_paren < close_bracket:
                index = close_paren
            if index < 0:
                raise InvalidVersionError(f"Unbounded range: {spec}")

            restriction = _parse_restriction(remaining[:index + 1])
            if restrictions:
                if previous_upper is None or restriction.lower is None \
                        or compare(restriction.lower, previous_upper) < 0:
                    raise InvalidVersionError(f"Ranges overlap: {spec}")
            restrictions.append(restriction)
            previous_upper = restriction.upper

            remaining = remaining[index + 1:].strip()
            if remaining.startswith(","):
                remaining = remaining[1:].strip()

        if remaining:
            if restrictions:
                raise InvalidVersionError(
                    f"Only fully-qualified sets allowed in multiple set scenario: {spec}"
                )
            return cls(str(spec), remaining, (EVERYTHING,))
        return cls(str(spec), None, tuple(restrictions))

    @property
    def is_soft(self) -> bool:
        return self.recommended_version is not None

    def contains(self, candidate: str) -> bool:
        return any(r.contains(candidate) for r in self.restrictions)

    def select(self, candidates: Iterable[str]) -> Optional[str]:
        """Pick the version this spec resolves to among ``candidates``.

        Soft requirements return their recommended version; hard ranges the
        highest contained candidate, or ``None``.
        """
        if self.recommended_version is not None:
            return self.recommended_version
        best: Optional[str] = None
        for candidate in candidates:
            try:
                if not self.contains(candidate):
                    continue
                if best is None or compare(candidate, best) > 0:
                    best = candidate
            except InvalidVersionError:
                logger.debug("Skipping unorderable candidate %s for %s", candidate, self.spec)
        return best

    def __str__(self) -> str:
        if self.recommended_version is not None:
            return self.recommended_version
        return ",".join(str(r) for r in self.restrictions)

    def __repr__(self) -> str:
        return f"VersionRange({self.spec!r})"
