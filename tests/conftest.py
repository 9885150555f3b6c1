"""Shared fixtures: a small synthetic dependency graph."""
import pytest

from registry.manifest import ManifestResolutionService
from versioning.models import Artifact, Dependency, ProjectModel


def dep(artifact_id, version, **kwargs):
    return Dependency(group_id="g", artifact_id=artifact_id, version=version, **kwargs)


def art(artifact_id, version, **kwargs):
    return Artifact(group_id="g", artifact_id=artifact_id, version=version, **kwargs)


@pytest.fixture
def project():
    """P depends on a (2.0), b (1.0) and c (3.0.0)."""
    return ProjectModel(
        group_id="com.example",
        artifact_id="app",
        version="1.0",
        dependencies=[dep("a", "2.0"), dep("b", "1.0"), dep("c", "3.0.0")],
    )


@pytest.fixture
def service(project):
    """a 2.3.1 pulls in b 1.5 and d 2.0; the build resolved d to 1.9."""
    return ManifestResolutionService(
        project,
        artifacts={
            "g:a:2.3.1": [dep("b", "1.5"), dep("d", "2.0")],
            "g:c:2.9.0": [dep("b", "2.5")],
        },
        resolved=[
            art("a", "2.3.1", version_range="2.0"),
            art("b", "2.0.0", version_range="1.0"),
            art("c", "2.9.0", version_range="3.0.0"),
            art("d", "1.9"),
        ],
    )
