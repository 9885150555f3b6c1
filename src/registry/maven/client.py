"""Resolution service backed by a remote Maven repository.

POMs and ``maven-metadata.xml`` are fetched over HTTP and cached for the
lifetime of the service. Caches are guarded by a lock because the walker
resolves direct dependencies from several worker threads.
"""
from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

import requests

from common.http_client import safe_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from errors import ArtifactResolutionError, ConfigurationError
from registry.base import DeclaredGraphResolutionService
from registry.maven.pom import EffectivePom, PomModel, effective_pom, parse_pom
from versioning.models import Artifact, Dependency, ProjectModel
from versioning.range import VersionRange

logger = logging.getLogger(__name__)

Coordinates = Tuple[str, str, str]


class MavenRepositoryResolutionService(DeclaredGraphResolutionService):
    """Reads dependency declarations from POMs in a Maven repository."""

    def __init__(self, project: ProjectModel, repository_url: str = Constants.MAVEN_CENTRAL_URL):
        super().__init__(project)
        self.repository_url = repository_url.rstrip("/")
        self._lock = threading.Lock()
        self._poms: Dict[Coordinates, PomModel] = {}
        self._effective: Dict[Coordinates, EffectivePom] = {}
        self._metadata: Dict[Tuple[str, str], List[str]] = {}

    def _artifact_base(self, group: str, artifact: str) -> str:
        return f"{self.repository_url}/{group.replace('.', '/')}/{artifact}"

    def pom_url(self, group: str, artifact: str, version: str) -> str:
        return f"{self._artifact_base(group, artifact)}/{version}/{artifact}-{version}.pom"

    def metadata_url(self, group: str, artifact: str) -> str:
        return f"{self._artifact_base(group, artifact)}/maven-metadata.xml"

    def _fetch(self, url: str, what: str) -> Optional[str]:
        """GET ``url``; None on 404, ArtifactResolutionError on other failures."""
        try:
            response = safe_get(url, context="maven", fatal=False)
        except requests.RequestException as exc:
            raise ArtifactResolutionError(f"Could not fetch {what} from {safe_url(url)}: {exc}") from exc
        if response.status_code == 200:
            return response.text
        if is_debug_enabled(logger):
            logger.debug("Maven fetch failed", extra=extra_context(
                event="function_exit", component="maven_client", action="fetch",
                outcome="fetch_failed", status_code=response.status_code, target=safe_url(url)
            ))
        if response.status_code == 404:
            return None
        raise ArtifactResolutionError(
            f"Could not fetch {what} from {safe_url(url)}: HTTP {response.status_code}"
        )

    def _pom(self, group: str, artifact: str, version: str) -> PomModel:
        key = (group, artifact, version)
        with self._lock:
            if key in self._poms:
                return self._poms[key]

        text = self._fetch(self.pom_url(group, artifact, version), f"POM of {group}:{artifact}:{version}")
        if text is None:
            raise ArtifactResolutionError(
                f"POM of {group}:{artifact}:{version} not found", missing=[f"{group}:{artifact}"]
            )
        try:
            pom = parse_pom(text)
        except ConfigurationError as exc:
            raise ArtifactResolutionError(f"Unreadable POM of {group}:{artifact}:{version}: {exc}") from exc

        with self._lock:
            self._poms[key] = pom
        return pom

    def effective_pom(self, group: str, artifact: str, version: str) -> EffectivePom:
        key = (group, artifact, version)
        with self._lock:
            if key in self._effective:
                return self._effective[key]

        pom = self._pom(group, artifact, version)
        parents: List[PomModel] = []
        current = pom
        for _ in range(Constants.MAX_PARENT_DEPTH):
            ref = current.parent
            if ref is None or not ref.group_id or not ref.version:
                break
            current = self._pom(ref.group_id, ref.artifact_id, ref.version)
            parents.append(current)
        effective = effective_pom(pom, parents)

        with self._lock:
            self._effective[key] = effective
        return effective

    def available_versions(self, group: str, artifact: str) -> List[str]:
        """Versions listed in ``maven-metadata.xml``, in source order."""
        key = (group, artifact)
        with self._lock:
            if key in self._metadata:
                return list(self._metadata[key])

        text = self._fetch(self.metadata_url(group, artifact), f"metadata of {group}:{artifact}")
        versions: List[str] = []
        if text is not None:
            try:
                root = ET.fromstring(text)
            except ET.ParseError as exc:
                raise ArtifactResolutionError(f"Unreadable metadata of {group}:{artifact}: {exc}") from exc
            for item in root.findall("versioning/versions/version"):
                if item.text and item.text.strip():
                    versions.append(item.text.strip())

        with self._lock:
            self._metadata[key] = versions
        return list(versions)

    def declared_dependencies(self, artifact: Artifact) -> List[Dependency]:
        effective = self.effective_pom(artifact.group_id, artifact.artifact_id, artifact.version)
        return list(effective.dependencies)

    def select_version(self, dependency: Dependency) -> str:
        if not dependency.version:
            raise ArtifactResolutionError(f"No version declared for {dependency.qualified_name}")
        version_range = VersionRange.from_spec(dependency.version)
        if version_range.is_soft:
            return version_range.recommended_version
        selected = version_range.select(
            self.available_versions(dependency.group_id, dependency.artifact_id)
        )
        if selected is None:
            raise ArtifactResolutionError(
                f"No version of {dependency.qualified_name} in {self.repository_url} "
                f"matches {dependency.version}",
                missing=[dependency.qualified_name],
            )
        return selected
