"""Resolution service backed by a static graph manifest.

The manifest describes the project (optionally), the artifacts the build
resolved (optionally), and what each artifact version declares:

    project:
      groupId: com.example
      artifactId: app
      version: "1.0"
      dependencies:
        - {groupId: g, artifactId: a, version: "2.0"}
    resolved:
      - {groupId: g, artifactId: a, version: 2.3.1}
    artifacts:
      "g:a:2.3.1":
        - {groupId: g, artifactId: b, version: "1.5"}

Artifacts without an ``artifacts`` entry have no dependencies.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from common.config_files import load_mapping
from constants import Constants
from errors import ArtifactResolutionError, ConfigurationError
from registry.base import DeclaredGraphResolutionService
from versioning.models import Artifact, Dependency, ProjectModel
from versioning.range import VersionRange

logger = logging.getLogger(__name__)


def _text(entry: Mapping[str, Any], key: str) -> Optional[str]:
    value = entry.get(key)
    if value is None:
        return None
    return str(value).strip() or None


def _exclusions(values: Any) -> tuple:
    patterns = []
    for item in values or ():
        if isinstance(item, str):
            patterns.append(item.strip())
        elif isinstance(item, Mapping):
            patterns.append(f"{_text(item, 'groupId') or '*'}:{_text(item, 'artifactId') or '*'}")
        else:
            raise ConfigurationError(f"Malformed exclusion entry: {item!r}")
    return tuple(patterns)


def dependency_from_mapping(entry: Any) -> Dependency:
    """Build a Dependency from a camelCase mapping.

    Raises:
        ConfigurationError: when groupId or artifactId is missing.
    """
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Malformed dependency entry: {entry!r}")
    group_id = _text(entry, "groupId")
    artifact_id = _text(entry, "artifactId")
    if not group_id or not artifact_id:
        raise ConfigurationError(f"Dependency entry needs groupId and artifactId: {dict(entry)!r}")
    return Dependency(
        group_id=group_id,
        artifact_id=artifact_id,
        version=_text(entry, "version"),
        type=_text(entry, "type") or Constants.DEFAULT_TYPE,
        classifier=_text(entry, "classifier"),
        scope=_text(entry, "scope"),
        optional=bool(entry.get("optional", False)),
        exclusions=_exclusions(entry.get("exclusions")),
    )


def artifact_from_mapping(entry: Any) -> Artifact:
    dependency = dependency_from_mapping(entry)
    if not dependency.version:
        raise ConfigurationError(
            f"Resolved artifact {dependency.qualified_name} needs a version"
        )
    return Artifact(
        group_id=dependency.group_id,
        artifact_id=dependency.artifact_id,
        version=dependency.version,
        version_range=_text(entry, "versionRange"),
        type=dependency.type,
        classifier=dependency.classifier,
        scope=dependency.effective_scope,
        optional=dependency.optional,
    )


def project_from_mapping(entry: Any) -> ProjectModel:
    if not isinstance(entry, Mapping):
        raise ConfigurationError("The project section must be a mapping")
    managed = {}
    for item in entry.get("dependencyManagement") or ():
        dependency = dependency_from_mapping(item)
        if dependency.version:
            managed[dependency.qualified_name] = dependency.version
    return ProjectModel(
        group_id=_text(entry, "groupId") or "unknown",
        artifact_id=_text(entry, "artifactId") or "unknown",
        version=_text(entry, "version") or "0",
        dependencies=[dependency_from_mapping(d) for d in entry.get("dependencies") or ()],
        managed_versions=managed,
    )


class ManifestResolutionService(DeclaredGraphResolutionService):
    """Answers resolution questions from an in-memory graph description."""

    def __init__(self, project: ProjectModel,
                 artifacts: Optional[Mapping[str, Iterable[Dependency]]] = None,
                 resolved: Optional[Iterable[Artifact]] = None):
        super().__init__(project)
        self._declarations: Dict[str, List[Dependency]] = {
            key: list(deps) for key, deps in (artifacts or {}).items()
        }
        self._resolved: Optional[Dict[str, Artifact]] = None
        if resolved is not None:
            self._resolved = {a.qualified_name: a for a in resolved}

        self._known_versions: Dict[str, List[str]] = {}
        for key in self._declarations:
            name, _, version = key.rpartition(":")
            self._known_versions.setdefault(name, []).append(version)
        for artifact in (self._resolved or {}).values():
            self._known_versions.setdefault(artifact.qualified_name, []).append(artifact.version)

    @classmethod
    def from_file(cls, path: str, project: Optional[ProjectModel] = None) -> "ManifestResolutionService":
        """Load a manifest file; ``project`` overrides the file's project section.

        Raises:
            OSError: if the file cannot be read.
            ConfigurationError: if the manifest is malformed.
        """
        data = load_mapping(path, what="graph manifest")
        if project is None:
            if "project" not in data:
                raise ConfigurationError(
                    f"Graph manifest {path} has no project section and no POM was given"
                )
            project = project_from_mapping(data["project"])

        artifacts_section = data.get("artifacts") or {}
        if not isinstance(artifacts_section, Mapping):
            raise ConfigurationError("The artifacts section must map artifact keys to dependency lists")
        artifacts = {
            str(key): [dependency_from_mapping(d) for d in (deps or ())]
            for key, deps in artifacts_section.items()
        }

        resolved = None
        if data.get("resolved") is not None:
            resolved = [artifact_from_mapping(a) for a in data["resolved"]]

        logger.info("Loaded graph manifest with %d artifact declarations", len(artifacts))
        return cls(project, artifacts, resolved)

    def resolved_project_artifacts(self) -> Dict[str, Artifact]:
        if self._resolved is not None:
            return dict(self._resolved)
        return super().resolved_project_artifacts()

    def declared_dependencies(self, artifact: Artifact) -> List[Dependency]:
        declared = self._declarations.get(artifact.key)
        if declared is None:
            logger.debug("No declarations for %s, treating it as a leaf", artifact.key)
            return []
        return list(declared)

    def select_version(self, dependency: Dependency) -> str:
        if not dependency.version:
            raise ArtifactResolutionError(f"No version declared for {dependency.qualified_name}")
        version_range = VersionRange.from_spec(dependency.version)
        selected = version_range.select(self._known_versions.get(dependency.qualified_name, ()))
        if selected is None:
            raise ArtifactResolutionError(
                f"No known version of {dependency.qualified_name} matches {dependency.version}",
                missing=[dependency.qualified_name],
            )
        return selected
