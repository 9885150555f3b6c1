"""Exception types raised across the version checking pipeline."""
from __future__ import annotations

from typing import Iterable, List, Optional


class DependencyVersionsError(Exception):
    """Base class for all errors raised by depversions."""


class InvalidVersionError(DependencyVersionsError, ValueError):
    """A version string or version specification could not be parsed."""


class UnresolvableVersionSpecError(DependencyVersionsError):
    """A hard range has no recommended version and excludes the resolved one."""


class ConfigurationError(DependencyVersionsError, ValueError):
    """Configuration is malformed or names an unknown strategy or scope."""


class ArtifactResolutionError(DependencyVersionsError):
    """The resolution service could not fetch part of a dependency graph.

    ``resolved_artifacts`` holds whatever was resolved before the failure so
    callers can keep walking the partial result.
    """

    def __init__(self, message: str, resolved_artifacts: Optional[Iterable] = None,
                 missing: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.resolved_artifacts = set(resolved_artifacts or ())
        self.missing: List[str] = sorted(missing or ())


class ConflictDetectedError(DependencyVersionsError):
    """Raised when conflicts are found and the run is configured to fail."""

    def __init__(self, conflicts: Iterable[str]):
        self.conflicts = list(conflicts)
        super().__init__(
            "Found dependency version conflicts: " + ", ".join(self.conflicts)
        )
