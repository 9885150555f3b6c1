"""Version compatibility strategies.

Every strategy answers one question: may the build use ``resolved`` where
``expected`` was requested? Strategies never raise on odd input; a version
they cannot make sense of is simply not compatible.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from errors import ConfigurationError
from versioning.version import Version, VersionElement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AprVersion:
    """``major.minor[.patch]`` plus whatever trails the numeric part."""

    major: int
    minor: int
    patch: int
    qualifier: str


def parse_apr_version(elements: Sequence[VersionElement]) -> Optional[AprVersion]:
    """Read an APR style version, or ``None`` when the elements do not fit."""
    if len(elements) < 2:
        return None
    first, second = elements[0], elements[1]
    if not (first.is_number and first.has_dot and second.is_number):
        return None

    patch = 0
    qualifier_start = 1
    if len(elements) > 2 and second.has_dot and elements[2].is_number:
        patch = elements[2].number
        qualifier_start = 2

    qualifier = "".join(str(element) for element in elements[qualifier_start + 1:])
    return AprVersion(first.number, second.number, patch, qualifier)


def _default(resolved: Version, expected: Version) -> bool:
    resolved_elements = resolved.elements
    expected_elements = expected.elements

    for left, right in zip(resolved_elements, expected_elements):
        if left.has_numbers and right.has_numbers:
            if left.number < right.number:
                logger.debug("... no!")
                return False
            if left.number > right.number:
                logger.debug("... yes!")
                return True
        elif left.text != right.text:
            logger.debug("... no!")
            return False

    if len(expected_elements) == len(resolved_elements) + 1 \
            and expected_elements[-1].text == "SNAPSHOT":
        logger.debug("... yes, is just a SNAPSHOT release")
        return True

    result = len(resolved_elements) >= len(expected_elements)
    logger.debug("... %s!", "yes" if result else "no")
    return result


def _apr(resolved: Version, expected: Version) -> bool:
    resolved_apr = parse_apr_version(resolved.elements)
    expected_apr = parse_apr_version(expected.elements)
    if resolved_apr is None or expected_apr is None:
        logger.debug("... no, could not parse versions.")
        return False
    if resolved_apr.major != expected_apr.major:
        logger.debug("... no, different major versions!")
        return False
    if resolved_apr.minor >= expected_apr.minor:
        logger.debug("... yes, minor version is ok!")
        return True
    return _same_qualifier(resolved_apr, expected_apr)


def _two_digits_backward_compatible(resolved: Version, expected: Version) -> bool:
    resolved_apr = parse_apr_version(resolved.elements)
    expected_apr = parse_apr_version(expected.elements)
    if resolved_apr is None or expected_apr is None:
        logger.debug("... no, could not parse versions.")
        return False
    if resolved_apr.major >= expected_apr.major:
        logger.debug("... yes, major version ok!")
        return True
    return _same_qualifier(resolved_apr, expected_apr)


def _same_qualifier(resolved: AprVersion, expected: AprVersion) -> bool:
    result = resolved.qualifier == expected.qualifier
    logger.debug("... %s", "yes!" if result else "no, qualifiers don't match!")
    return result


def _single_digit(resolved: Version, expected: Version) -> bool:
    if not resolved.elements or not expected.elements:
        logger.debug("... no, nothing to compare.")
        return False
    result = resolved.elements[0].number >= expected.elements[0].number
    logger.debug("... %s.", "yes" if result else "no")
    return result


class Strategy(enum.Enum):
    """The closed set of compatibility strategies, keyed by configuration name."""

    DEFAULT = "default"
    APR = "apr"
    SINGLE_DIGIT = "single-digit"
    TWO_DIGITS_BACKWARD_COMPATIBLE = "two-digits-backward-compatible"

    @property
    def strategy_name(self) -> str:
        return self.value

    def is_compatible(self, resolved: Version, expected: Version) -> bool:
        """Return True when ``resolved`` may stand in for ``expected``."""
        logger.debug("Is %s compatible to %s (%s)... ", resolved, expected, self.value)
        return _IMPLEMENTATIONS[self](resolved, expected)

    @classmethod
    def for_name(cls, name: str) -> "Strategy":
        """Look up a strategy by configuration name, ignoring case.

        Raises:
            ConfigurationError: if no strategy has that name.
        """
        key = (name or "").strip().lower()
        key = _ALIASES.get(key, key)
        for member in cls:
            if member.value == key:
                return member
        raise ConfigurationError(
            f"Unknown version strategy '{name}'; known strategies: "
            + ", ".join(m.value for m in cls)
        )


_ALIASES = {"two-digit-backward-compatible": Strategy.TWO_DIGITS_BACKWARD_COMPATIBLE.value}

_IMPLEMENTATIONS: Dict[Strategy, Callable[[Version, Version], bool]] = {
    Strategy.DEFAULT: _default,
    Strategy.APR: _apr,
    Strategy.SINGLE_DIGIT: _single_digit,
    Strategy.TWO_DIGITS_BACKWARD_COMPATIBLE: _two_digits_backward_compatible,
}
