"""Data models for dependency version checking."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from constants import Constants
from errors import ConfigurationError, InvalidVersionError
from versioning.version import Version


def qualified_name(group_id: str, artifact_id: str, type_: Optional[str] = None,
                   classifier: Optional[str] = None) -> str:
    """Build ``group:artifact[:type][:classifier]``.

    ``jar`` is the implied type; the ``tests`` classifier of a ``test-jar``
    is implied by the type.
    """
    name = f"{group_id}:{artifact_id}"
    if type_ and type_ != Constants.DEFAULT_TYPE:
        name = f"{name}:{type_}"
    if classifier and (classifier != "tests" or type_ != "test-jar"):
        name = f"{name}:{classifier}"
    return name


@dataclass(frozen=True)
class Artifact:
    """A concrete artifact in a resolved graph.

    ``version`` is the selected version; ``version_range`` is the spec it was
    selected from, when it came from a declaration.
    """
    group_id: str
    artifact_id: str
    version: str
    version_range: Optional[str] = None
    type: str = Constants.DEFAULT_TYPE
    classifier: Optional[str] = None
    scope: str = Constants.DEFAULT_SCOPE
    optional: bool = False

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.group_id, self.artifact_id, self.type, self.classifier)

    @property
    def key(self) -> str:
        """Qualified name plus version, used to look up declared dependencies."""
        return f"{self.qualified_name}:{self.version}"

    def as_version(self) -> Version:
        """Version as seen by a consumer: the declared spec with the selected version."""
        if self.version_range and self.version_range != self.version:
            return Version(self.version_range, self.version)
        return Version(self.version)


@dataclass(frozen=True)
class Dependency:
    """A dependency declaration in a project or a POM."""
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    type: str = Constants.DEFAULT_TYPE
    classifier: Optional[str] = None
    scope: Optional[str] = None
    optional: bool = False
    exclusions: Tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.group_id, self.artifact_id, self.type, self.classifier)

    @property
    def effective_scope(self) -> str:
        return self.scope or Constants.DEFAULT_SCOPE

    def to_artifact(self, version: str, scope: Optional[str] = None) -> Artifact:
        return Artifact(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            version=version,
            version_range=self.version,
            type=self.type,
            classifier=self.classifier,
            scope=scope or self.effective_scope,
            optional=self.optional,
        )


@dataclass
class ProjectModel:
    """The project being checked and its direct dependency declarations."""
    group_id: str
    artifact_id: str
    version: str
    dependencies: List[Dependency] = field(default_factory=list)
    # qualified name -> version pinned by dependencyManagement
    managed_versions: Dict[str, str] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.group_id, self.artifact_id)


@dataclass(frozen=True)
class ResolverDefinition:
    """Configuration rule mapping identifiers or patterns to a strategy name."""
    strategy_name: str
    includes: Tuple[str, ...] = ()
    id: Optional[str] = None


@dataclass(frozen=True)
class VersionCheckExclude:
    """Suppresses one specific (artifact, expected, resolved) conflict."""
    group_id: Optional[str]
    artifact_id: Optional[str]
    expected_version: Optional[str]
    resolved_version: Optional[str]
    classifier: Optional[str] = None
    type: str = Constants.DEFAULT_TYPE

    def check(self) -> None:
        """Validate the rule.

        Raises:
            ConfigurationError: when a required field is missing or a version
                is blank.
        """
        if not self.group_id or not self.artifact_id \
                or self.expected_version is None or self.resolved_version is None:
            raise ConfigurationError(f"Illegal exclusion specification {self}")
        try:
            Version(self.expected_version)
            Version(self.resolved_version)
        except InvalidVersionError as exc:
            raise ConfigurationError(f"Illegal exclusion specification {self}: {exc}") from exc

    def matches(self, artifact: Artifact, expected: Version, resolved: Version) -> bool:
        return (
            self.group_id == artifact.group_id
            and self.artifact_id == artifact.artifact_id
            and self.classifier == artifact.classifier
            and self.type == (artifact.type or Constants.DEFAULT_TYPE)
            and Version(self.expected_version) == expected
            and Version(self.resolved_version) == resolved
        )

    def __str__(self) -> str:
        name = f"{self.group_id}:{self.artifact_id}"
        if self.type != Constants.DEFAULT_TYPE:
            name = f"{name}:{self.type}"
        if self.classifier is not None:
            name = f"{name}:{self.classifier}"
        return f"{name} {self.expected_version} vs. {self.resolved_version}"


class VersionResolution:
    """One observed edge: ``dependent_name`` expected ``expected_version`` of
    ``dependency_name`` and the graph resolved it to ``actual_version``.

    ``dependent_name`` is None for the project's own declaration. The
    conflict flag is written once by :meth:`judge`; before that the record is
    pending and ``conflict`` reads False.
    """

    __slots__ = ("dependent_name", "dependency_name", "expected_version", "actual_version",
                 "direct_dependency", "_conflict")

    def __init__(self, dependent_name: Optional[str], dependency_name: str,
                 expected_version: Version, actual_version: Version,
                 direct_dependency: bool = False):
        self.dependent_name = dependent_name
        self.dependency_name = dependency_name
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.direct_dependency = direct_dependency
        self._conflict: Optional[bool] = None

    def judge(self, conflict: bool) -> "VersionResolution":
        if self._conflict is not None:
            raise ValueError(f"Resolution for {self.dependency_name} was already judged")
        self._conflict = bool(conflict)
        return self

    @property
    def is_judged(self) -> bool:
        return self._conflict is not None

    @property
    def conflict(self) -> bool:
        return bool(self._conflict)

    def as_tuple(self) -> Tuple[str, Optional[str], str, str, bool]:
        return (
            self.dependency_name,
            self.dependent_name,
            self.expected_version.selected_version,
            self.actual_version.selected_version,
            self.conflict,
        )

    def __repr__(self) -> str:
        return (
            f"VersionResolution({self.dependent_name!r} -> {self.dependency_name!r}, "
            f"expected={self.expected_version.selected_version!r}, "
            f"actual={self.actual_version.selected_version!r}, "
            f"direct={self.direct_dependency}, conflict={self._conflict})"
        )
