"""Turns a finished resolution map into conflict reports and dependency listings."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from errors import ConflictDetectedError
from resolution.walker import ResolutionMap
from versioning.models import VersionResolution
from versioning.version import Version

logger = logging.getLogger(__name__)


def resolved_version(records: List[VersionResolution]) -> Version:
    """Version the build resolved an artifact to.

    Read from the project's own record when there is one, otherwise from the
    record of the alphabetically first dependent, so the answer does not
    depend on the order workers appended records in.
    """
    record = min(records, key=lambda r: (r.dependent_name is not None, r.dependent_name or ""))
    return Version(record.actual_version.selected_version)


@dataclass
class ConflictEntry:
    """Everything the report says about one conflicted artifact."""
    name: str
    direct: bool
    resolved_version: Version
    expected_version: Optional[Version] = None
    # expected version -> dependents that asked for it, both sorted
    consumers: List[Tuple[Version, List[str]]] = field(default_factory=list)

    def render(self) -> str:
        if self.direct and self.expected_version is not None:
            lines = [
                f"Found a problem with the direct dependency {self.name} of the current project",
                f"  Expected version is {self.expected_version.raw_version}",
            ]
        else:
            lines = [f"Found a problem with the dependency {self.name}"]
        lines.append(f"  Resolved version is {self.resolved_version.selected_version}")

        for expected, dependents in self.consumers:
            if self.resolved_version.has_higher_major_version(expected):
                prefix = "  A lower major version "
            elif self.resolved_version.is_higher_than_or_equal(expected):
                prefix = "  Version "
            else:
                prefix = "  A newer version "
            noun = "artifacts" if len(dependents) > 1 else "artifact"
            lines.append(f"{prefix}{expected.raw_version} was expected by {noun}: {', '.join(dependents)}")
        return "\n".join(lines)


@dataclass
class ConflictReport:
    entries: List[ConflictEntry]
    fail_on_conflict: bool = False

    @property
    def conflicted_names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.entries)

    @property
    def passed(self) -> bool:
        return not (self.fail_on_conflict and self.has_conflicts)

    def render(self) -> List[str]:
        return [entry.render() for entry in self.entries]

    def raise_for_conflicts(self) -> None:
        """Raise ConflictDetectedError when the run should fail."""
        if not self.passed:
            raise ConflictDetectedError(self.conflicted_names)


class ConflictReporter:
    """Groups resolution records per artifact and decides the verdict."""

    def __init__(self, fail_on_conflict: bool = False):
        self.fail_on_conflict = fail_on_conflict

    def build(self, resolution_map: ResolutionMap, direct_names: Iterable[str]) -> ConflictReport:
        direct = set(direct_names)
        project_expectations: Dict[str, Version] = {}
        resolved_versions: Dict[str, Version] = {}
        consumers: Dict[str, Dict[Version, Set[str]]] = {}
        conflicted: Set[str] = set()

        for name, records in resolution_map.items():
            if not records:
                logger.warning("No resolutions for '%s', this should never happen!", name)
                continue
            resolved_versions[name] = resolved_version(records)
            for record in records:
                if record.dependent_name is None:
                    project_expectations[name] = record.expected_version
                else:
                    consumers.setdefault(name, {}).setdefault(
                        record.expected_version, set()
                    ).add(record.dependent_name)
                if record.conflict:
                    conflicted.add(name)

        def entry(name: str, is_direct: bool) -> ConflictEntry:
            by_version = consumers.get(name, {})
            return ConflictEntry(
                name=name,
                direct=is_direct,
                resolved_version=resolved_versions[name],
                expected_version=project_expectations.get(name),
                consumers=[(v, sorted(by_version[v])) for v in sorted(by_version)],
            )

        entries = [entry(name, True) for name in sorted(direct & conflicted)]
        entries += [entry(name, False) for name in sorted(conflicted - direct)]
        return ConflictReport(entries, self.fail_on_conflict)

    def report(self, resolution_map: ResolutionMap, direct_names: Iterable[str]) -> ConflictReport:
        """Build the report and log one paragraph per conflicted artifact."""
        report = self.build(resolution_map, direct_names)
        log = logger.error if self.fail_on_conflict else logger.warning
        for paragraph in report.render():
            log("%s", paragraph)
        if not report.has_conflicts:
            logger.info("No dependency version conflicts found")
        return report


def _format_version(version: str, direct: bool, conflict: bool) -> str:
    if direct:
        version = f"*{version}*"
    if conflict:
        version = f"!{version}!"
    return version


def render_listing(resolution_map: ResolutionMap, direct_only: bool = False,
                   conflicts_only: bool = False) -> List[str]:
    """One line per artifact: resolved version and every expected version.

    Expected versions asked for by the project are marked ``*v*``; versions
    involved in a conflict are marked ``!v!``.
    """
    entries = resolution_map.items()
    width = max((len(name) for name, _ in entries), default=0) + 2
    lines = []
    for name, records in entries:
        if not records:
            logger.warning("No resolutions for '%s', this should never happen!", name)
            continue

        versions: Dict[str, List[bool]] = {}
        for record in records:
            flags = versions.setdefault(record.expected_version.selected_version, [False, False])
            flags[0] = flags[0] or record.direct_dependency
            flags[1] = flags[1] or record.conflict

        if conflicts_only and not any(conflict for _, conflict in versions.values()):
            continue
        if direct_only and not any(direct for direct, _ in versions.values()):
            continue

        rendered = ", ".join(
            _format_version(version, direct, conflict)
            for version, (direct, conflict) in sorted(versions.items())
        )
        resolved = resolved_version(records).selected_version
        lines.append(f"{(name + ': ').ljust(width)}{name}-{resolved} ({rendered})")
    return lines
