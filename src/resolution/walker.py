"""Resolution graph walker.

Builds a ``ResolutionMap`` for one scope: for every artifact in the
project's dependency graph, which version each consumer expected, which
version the build resolved, and whether the applicable strategy accepts the
pair. Direct dependencies are processed independently, in parallel by
default, and all records land in the shared map under per-key locks.
"""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants, TRANSITIVE_SCOPES, VISIBLE_SCOPES
from errors import (
    ArtifactResolutionError,
    ConfigurationError,
    InvalidVersionError,
    UnresolvableVersionSpecError,
)
from registry.base import ArtifactResolutionService
from versioning.models import (
    Artifact,
    Dependency,
    ProjectModel,
    VersionCheckExclude,
    VersionResolution,
)
from versioning.range import VersionRange
from versioning.strategy_registry import StrategyRegistry
from versioning.version import Version

logger = logging.getLogger(__name__)


class ResolutionMap:
    """Qualified artifact name -> VersionResolution records, safe for concurrent appends.

    Appends to the same name are serialized by that name's lock; appends to
    different names only share the short critical section that creates a
    name's lock and list.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._records: Dict[str, List[VersionResolution]] = {}

    def _slot(self, name: str) -> Tuple[threading.Lock, List[VersionResolution]]:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
                self._records[name] = []
            return lock, self._records[name]

    def add(self, resolution: VersionResolution) -> None:
        """Append a record, warning if it disagrees on the resolved version."""
        lock, records = self._slot(resolution.dependency_name)
        with lock:
            for existing in records:
                if existing.actual_version != resolution.actual_version:
                    logger.warning(
                        "Dependency '%s' resolved to '%s' but was already resolved to '%s'!",
                        resolution.dependency_name,
                        resolution.actual_version,
                        existing.actual_version,
                    )
            if is_debug_enabled(logger):
                logger.debug("Adding resolution: %r", resolution)
            records.append(resolution)

    def get(self, name: str) -> List[VersionResolution]:
        with self._guard:
            return list(self._records.get(name, ()))

    def keys(self) -> List[str]:
        with self._guard:
            return sorted(self._records)

    def items(self) -> List[Tuple[str, List[VersionResolution]]]:
        """Snapshot of all entries, sorted by qualified name."""
        with self._guard:
            return [(name, list(self._records[name])) for name in sorted(self._records)]

    def as_tuples(self) -> Set[Tuple[str, Optional[str], str, str, bool]]:
        return {record.as_tuple() for _, records in self.items() for record in records}

    def __contains__(self, name: object) -> bool:
        with self._guard:
            return name in self._records

    def __len__(self) -> int:
        with self._guard:
            return len(self._records)


class ResolutionSession:
    """One run of the walker; owns its worker pool.

    Use as a context manager so the pool is shut down when the run ends.

    Raises:
        ConfigurationError: at construction, for an illegal exclusion rule.
    """

    def __init__(self, project: ProjectModel, service: ArtifactResolutionService,
                 registry: StrategyRegistry,
                 excludes: Iterable[VersionCheckExclude] = (),
                 warn_if_major_version_is_higher: bool = False,
                 use_parallel_resolution: bool = True,
                 max_workers: Optional[int] = None):
        self.project = project
        self.service = service
        self.registry = registry
        self.excludes = list(excludes)
        self.warn_if_major_version_is_higher = warn_if_major_version_is_higher
        self.use_parallel_resolution = use_parallel_resolution
        self.max_workers = max_workers or (os.cpu_count() or 1) * Constants.WORKER_THREADS_PER_CPU
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._resolved: Optional[Dict[str, Artifact]] = None

        for exclude in self.excludes:
            exclude.check()
            logger.info("Adding exclusion '%s'", exclude)

    def __enter__(self) -> "ResolutionSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix=Constants.WORKER_THREAD_PREFIX,
                )
            return self._executor

    def resolved_artifacts(self) -> Dict[str, Artifact]:
        """The project's resolved artifacts, fetched once per session."""
        if self._resolved is None:
            try:
                self._resolved = self.service.resolved_project_artifacts()
            except ArtifactResolutionError as exc:
                logger.error("Could not resolve all project dependencies: %s", exc)
                self._resolved = {a.qualified_name: a for a in exc.resolved_artifacts}
        return self._resolved

    def direct_dependency_names(self) -> List[str]:
        return sorted({d.qualified_name for d in self.project.dependencies})

    def build_resolution_map(self, scope: Optional[str] = None) -> ResolutionMap:
        """Walk the graph for ``scope`` (compile, runtime, test, or None for all).

        Raises:
            ConfigurationError: for an unknown scope.
            Exception: the first unexpected error raised by a worker, after
                every worker has finished.
        """
        if scope not in VISIBLE_SCOPES:
            raise ConfigurationError(f"Unknown scope '{scope}'")
        visible = VISIBLE_SCOPES[scope]
        transitive = TRANSITIVE_SCOPES[scope]
        resolved = self.resolved_artifacts()
        resolution_map = ResolutionMap()
        dependencies = list(self.project.dependencies)

        with Timer() as timer:
            if self.use_parallel_resolution and len(dependencies) > 1:
                pool = self._pool()
                futures: List[Future] = [
                    pool.submit(self._update_for_dependency, resolution_map, dependency,
                                resolved, visible, transitive)
                    for dependency in dependencies
                ]
                wait(futures)
                errors = [f.exception() for f in futures if f.exception() is not None]
                if errors:
                    logger.debug("%d worker(s) failed; raising the first error", len(errors))
                    raise errors[0]
            else:
                for dependency in dependencies:
                    self._update_for_dependency(resolution_map, dependency, resolved,
                                                visible, transitive)

        logger.debug(
            "Built resolution map",
            extra=extra_context(
                event="function_exit", component="walker", action="build_resolution_map",
                scope=scope, count=len(resolution_map), duration_ms=timer.duration_ms(),
                parallel=self.use_parallel_resolution,
            ),
        )
        return resolution_map

    def _update_for_dependency(self, resolution_map: ResolutionMap, dependency: Dependency,
                               resolved: Dict[str, Artifact], visible: Sequence[str],
                               transitive: Sequence[str]) -> None:
        if dependency.effective_scope not in visible:
            logger.debug("Skipping %s in invisible scope %s", dependency.qualified_name,
                         dependency.effective_scope)
            return

        name = dependency.qualified_name
        artifact = resolved.get(name)
        if artifact is None:
            logger.warning("No artifact available for '%s' (probably a multi-module child artifact).", name)
            return

        resolution = self._resolve_direct(dependency, artifact, name)
        if resolution is not None:
            resolution_map.add(resolution)

        if not transitive:
            return
        try:
            artifacts: Iterable[Artifact] = self.service.resolve_transitive_dependencies(
                artifact, transitive, dependency.exclusions, include_optional=False
            )
        except ArtifactResolutionError as exc:
            logger.error("Could not resolve all dependencies of %s: %s", name, exc)
            artifacts = exc.resolved_artifacts

        contributed = list(self._resolve_transitive(name, artifacts, resolved, transitive))
        if is_debug_enabled(logger):
            logger.debug("Artifact %s contributes %s", name, contributed)
        for record in contributed:
            resolution_map.add(record)

    def _resolve_direct(self, dependency: Dependency, artifact: Artifact,
                        name: str) -> Optional[VersionResolution]:
        resolved_version = artifact.version
        try:
            version_range = VersionRange.from_spec(dependency.version)
            expected = version_range.recommended_version
            if expected is None:
                if not version_range.contains(resolved_version):
                    raise UnresolvableVersionSpecError(
                        f"Cannot determine the recommended version of dependency '{name}'; its "
                        f"version specification is '{dependency.version}', and the resolved "
                        f"version is '{resolved_version}'."
                    )
                expected = resolved_version
            resolved_obj = Version(resolved_version)
            expected_obj = Version(str(version_range), expected)
            in_range = version_range.contains(resolved_version)
        except InvalidVersionError as exc:
            logger.warning("Could not parse the version specification of %s: %s", name, exc)
            return None
        except UnresolvableVersionSpecError as exc:
            logger.error("%s", exc)
            return None

        resolution = VersionResolution(None, name, expected_obj, resolved_obj, direct_dependency=True)
        if self._is_excluded(artifact, expected_obj, resolved_obj):
            return resolution.judge(False)
        strategy = self.registry.find(name)
        return resolution.judge(not (in_range and strategy.is_compatible(resolved_obj, expected_obj)))

    def _resolve_transitive(self, dependent_name: str, artifacts: Iterable[Artifact],
                            resolved: Dict[str, Artifact],
                            transitive: Sequence[str]) -> Iterator[VersionResolution]:
        for candidate in sorted(artifacts, key=lambda a: a.qualified_name):
            if candidate.scope not in transitive:
                logger.debug("%s is in invisible scope %s, ignoring", candidate.key, candidate.scope)
                continue
            if candidate.optional:
                logger.debug("%s is optional, ignoring", candidate.key)
                continue

            name = candidate.qualified_name
            resolved_artifact = resolved.get(name)
            if resolved_artifact is None:
                logger.debug("Dependency %s of artifact %s is no longer used in the current project.",
                             candidate.key, dependent_name)
                continue

            try:
                resolved_version = resolved_artifact.as_version()
                expected_version = candidate.as_version()
            except InvalidVersionError as exc:
                logger.warning("Could not parse the version of %s: %s", name, exc)
                continue

            resolution = VersionResolution(dependent_name, name, expected_version, resolved_version)
            strategy = self.registry.find(name)
            if not self._is_excluded(resolved_artifact, expected_version, resolved_version):
                resolution.judge(not strategy.is_compatible(resolved_version, expected_version))
            else:
                resolution.judge(False)
                if self.warn_if_major_version_is_higher \
                        and not strategy.is_compatible(resolved_version, expected_version):
                    logger.warning(
                        "Artifact %s depends on %s at an incompatible version (%s) than the current project (%s)!",
                        dependent_name, name, candidate.version, resolved_artifact.version,
                    )
            yield resolution

    def _is_excluded(self, artifact: Artifact, expected: Version, resolved: Version) -> bool:
        return any(exclude.matches(artifact, expected, resolved) for exclude in self.excludes)
