"""Artifact resolution service interface and the declared-graph closure.

The version checker never picks versions itself. It asks a resolution
service two things: which artifacts the project build actually ended up
with, and which artifacts a given artifact pulls in on its own.
``DeclaredGraphResolutionService`` answers both from per-artifact
dependency declarations, computing a breadth-first nearest-wins closure
the way Maven mediates versions and scopes.
"""
from __future__ import annotations

import abc
import logging
import re
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Scopes, VISIBLE_SCOPES
from errors import ArtifactResolutionError, InvalidVersionError
from versioning.models import Artifact, Dependency, ProjectModel

logger = logging.getLogger(__name__)

ALL_SCOPES: Tuple[str, ...] = VISIBLE_SCOPES[None]


class ArtifactResolutionService(abc.ABC):
    """What the resolution graph walker needs from a build tool."""

    @abc.abstractmethod
    def resolved_project_artifacts(self) -> Dict[str, Artifact]:
        """Artifacts the project build resolved, keyed by qualified name.

        Raises:
            ArtifactResolutionError: when part of the graph could not be
                fetched; ``resolved_artifacts`` carries the rest.
        """

    @abc.abstractmethod
    def resolve_transitive_dependencies(self, artifact: Artifact, scopes: Sequence[str],
                                        exclusions: Sequence[str] = (),
                                        include_optional: bool = False) -> Set[Artifact]:
        """Artifacts ``artifact`` depends on, in its own resolution, within ``scopes``.

        Raises:
            ArtifactResolutionError: when part of the graph could not be
                fetched; ``resolved_artifacts`` carries the rest.
        """


def mediate_scope(parent_scope: str, child_scope: Optional[str]) -> Optional[str]:
    """Scope a dependency's own dependency takes on, or None when it is not inherited."""
    child = child_scope or Scopes.COMPILE.value
    if child in (Scopes.TEST.value, Scopes.PROVIDED.value, Scopes.SYSTEM.value):
        return None
    if parent_scope == Scopes.COMPILE.value:
        return child
    if parent_scope == Scopes.RUNTIME.value:
        return Scopes.RUNTIME.value
    return parent_scope


def is_excluded(dependency: Dependency, patterns: Iterable[str]) -> bool:
    """True if ``group:artifact`` of the dependency matches any exclusion pattern."""
    for pattern in patterns:
        group, _, artifact = pattern.partition(":")
        if not _glob_match(group, dependency.group_id):
            continue
        if not artifact or _glob_match(artifact, dependency.artifact_id):
            return True
    return False


def _glob_match(pattern: str, value: str) -> bool:
    if pattern == "*":
        return True
    if "*" not in pattern:
        return pattern == value
    return re.fullmatch(re.escape(pattern).replace(r"\*", ".*"), value) is not None


class DeclaredGraphResolutionService(ArtifactResolutionService):
    """Resolution service built on per-artifact dependency declarations.

    Subclasses supply ``declared_dependencies`` and ``select_version``.
    """

    def __init__(self, project: ProjectModel):
        self.project = project
        self._project_lock = threading.Lock()
        self._project_artifacts: Optional[Dict[str, Artifact]] = None
        self._project_missing: List[str] = []

    @abc.abstractmethod
    def declared_dependencies(self, artifact: Artifact) -> List[Dependency]:
        """Dependencies declared by ``artifact``.

        Raises:
            ArtifactResolutionError: if the declarations cannot be read.
        """

    @abc.abstractmethod
    def select_version(self, dependency: Dependency) -> str:
        """Concrete version a declaration resolves to.

        Raises:
            InvalidVersionError: if the version spec cannot be parsed.
            ArtifactResolutionError: if no version can be determined.
        """

    def managed_version(self, dependency: Dependency) -> Optional[str]:
        """Version the project pins for a transitive ``dependency``, if any."""
        return self.project.managed_versions.get(dependency.qualified_name)

    def resolved_project_artifacts(self) -> Dict[str, Artifact]:
        with self._project_lock:
            if self._project_artifacts is None:
                with Timer() as timer:
                    self._project_artifacts, self._project_missing = self._closure(
                        self.project.dependencies, ALL_SCOPES, (), include_optional=True,
                        managed=True,
                    )
                logger.debug(
                    "Resolved project dependency graph",
                    extra=extra_context(
                        event="resolve", component="resolution_service", action="project_closure",
                        count=len(self._project_artifacts), duration_ms=timer.duration_ms(),
                    ),
                )
            artifacts = dict(self._project_artifacts)
            missing = list(self._project_missing)
        if missing:
            raise ArtifactResolutionError(
                "Could not resolve all project dependencies: " + ", ".join(missing),
                resolved_artifacts=artifacts.values(),
                missing=missing,
            )
        return artifacts

    def resolve_transitive_dependencies(self, artifact: Artifact, scopes: Sequence[str],
                                        exclusions: Sequence[str] = (),
                                        include_optional: bool = False) -> Set[Artifact]:
        roots = self.declared_dependencies(artifact)
        resolved, missing = self._closure(roots, scopes, exclusions, include_optional)
        if missing:
            raise ArtifactResolutionError(
                f"Could not resolve all dependencies of {artifact.key}: " + ", ".join(missing),
                resolved_artifacts=resolved.values(),
                missing=missing,
            )
        return set(resolved.values())

    def _closure(self, roots: Iterable[Dependency], scopes: Sequence[str],
                 exclusions: Sequence[str], include_optional: bool,
                 managed: bool = False) -> Tuple[Dict[str, Artifact], List[str]]:
        """Breadth-first walk; the nearest declaration of a qualified name wins."""
        allowed = set(scopes)
        resolved: Dict[str, Artifact] = {}
        missing: List[str] = []
        queue: Deque[Tuple[Dependency, str, Tuple[str, ...], int]] = deque(
            (dep, dep.effective_scope, tuple(exclusions), 1) for dep in roots
        )

        while queue:
            dependency, scope, inherited, depth = queue.popleft()
            name = dependency.qualified_name
            if name in resolved:
                continue
            if scope not in allowed or is_excluded(dependency, inherited):
                continue
            # optional dependencies of dependencies are never inherited
            if dependency.optional and (depth > 1 or not include_optional):
                continue

            try:
                version = (self.managed_version(dependency) if managed and depth > 1 else None) \
                    or self.select_version(dependency)
            except (InvalidVersionError, ArtifactResolutionError) as exc:
                logger.warning("Could not determine version of %s: %s", name, exc)
                missing.append(name)
                continue

            artifact = dependency.to_artifact(version, scope)
            resolved[name] = artifact
            if is_debug_enabled(logger):
                logger.debug("Resolved %s in scope %s", artifact.key, scope)

            try:
                children = self.declared_dependencies(artifact)
            except ArtifactResolutionError as exc:
                logger.warning("Could not read dependencies of %s: %s", artifact.key, exc)
                missing.append(name)
                continue

            child_exclusions = inherited + tuple(dependency.exclusions)
            for child in children:
                child_scope = mediate_scope(scope, child.scope)
                if child_scope is None:
                    continue
                queue.append((child, child_scope, child_exclusions, depth + 1))

        return resolved, missing
