"""Tests for the remote Maven repository resolution service."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import ArtifactResolutionError
from registry.maven.client import MavenRepositoryResolutionService
from versioning.models import Artifact, Dependency, ProjectModel

REPO = "https://repo.example.org/maven2"

LIB_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.example</groupId>
    <artifactId>lib-parent</artifactId>
    <version>3</version>
  </parent>
  <artifactId>lib</artifactId>
  <version>1.0</version>
  <dependencies>
    <dependency>
      <groupId>org.example</groupId>
      <artifactId>core</artifactId>
    </dependency>
    <dependency>
      <groupId>org.example</groupId>
      <artifactId>util</artifactId>
      <version>[1.0,2.0)</version>
    </dependency>
  </dependencies>
</project>
"""

PARENT_POM = """<project xmlns="http://maven.apache.org/POM/4.0.0">
  <groupId>org.example</groupId>
  <artifactId>lib-parent</artifactId>
  <version>3</version>
  <properties><core.version>2.1</core.version></properties>
  <dependencyManagement>
    <dependencies>
      <dependency>
        <groupId>org.example</groupId>
        <artifactId>core</artifactId>
        <version>${core.version}</version>
      </dependency>
    </dependencies>
  </dependencyManagement>
</project>
"""

UTIL_METADATA = """<metadata>
  <groupId>org.example</groupId>
  <artifactId>util</artifactId>
  <versioning>
    <versions>
      <version>0.9</version>
      <version>1.2</version>
      <version>1.10</version>
      <version>2.0</version>
    </versions>
  </versioning>
</metadata>
"""

LEAF_POM = "<project><groupId>org.example</groupId><artifactId>{a}</artifactId><version>{v}</version></project>"

PAGES = {
    f"{REPO}/org/example/lib/1.0/lib-1.0.pom": LIB_POM,
    f"{REPO}/org/example/lib-parent/3/lib-parent-3.pom": PARENT_POM,
    f"{REPO}/org/example/util/maven-metadata.xml": UTIL_METADATA,
    f"{REPO}/org/example/core/2.1/core-2.1.pom": LEAF_POM.format(a="core", v="2.1"),
    f"{REPO}/org/example/util/1.10/util-1.10.pom": LEAF_POM.format(a="util", v="1.10"),
}


def fake_get(url, **kwargs):
    response = MagicMock()
    if url in PAGES:
        response.status_code = 200
        response.text = PAGES[url]
    else:
        response.status_code = 404
        response.text = ""
    return response


@pytest.fixture
def maven():
    project = ProjectModel("com.example", "app", "1.0",
                           [Dependency("org.example", "lib", "1.0")])
    return MavenRepositoryResolutionService(project, REPO + "/")


class TestUrls:
    def test_pom_url(self, maven):
        assert maven.pom_url("org.example", "lib", "1.0") == f"{REPO}/org/example/lib/1.0/lib-1.0.pom"

    def test_metadata_url(self, maven):
        assert maven.metadata_url("org.example", "util") == f"{REPO}/org/example/util/maven-metadata.xml"


class TestResolution:
    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_declared_dependencies_use_parent_management(self, mock_get, maven):
        declared = maven.declared_dependencies(Artifact("org.example", "lib", "1.0"))
        assert [(d.qualified_name, d.version) for d in declared] == [
            ("org.example:core", "2.1"),
            ("org.example:util", "[1.0,2.0)"),
        ]

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_poms_are_fetched_once(self, mock_get, maven):
        artifact = Artifact("org.example", "lib", "1.0")
        maven.declared_dependencies(artifact)
        maven.declared_dependencies(artifact)
        assert mock_get.call_count == 2

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_available_versions(self, mock_get, maven):
        assert maven.available_versions("org.example", "util") == ["0.9", "1.2", "1.10", "2.0"]
        assert maven.available_versions("org.example", "missing") == []

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_range_selects_from_metadata(self, mock_get, maven):
        assert maven.select_version(Dependency("org.example", "util", "[1.0,2.0)")) == "1.10"
        assert maven.select_version(Dependency("org.example", "util", "1.2")) == "1.2"

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_range_without_match(self, mock_get, maven):
        with pytest.raises(ArtifactResolutionError) as excinfo:
            maven.select_version(Dependency("org.example", "util", "[3.0,)"))
        assert excinfo.value.missing == ["org.example:util"]

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_project_closure(self, mock_get, maven):
        resolved = maven.resolved_project_artifacts()
        assert {name: a.version for name, a in resolved.items()} == {
            "org.example:lib": "1.0",
            "org.example:core": "2.1",
            "org.example:util": "1.10",
        }

    @patch("registry.maven.client.safe_get", side_effect=fake_get)
    def test_missing_pom(self, mock_get, maven):
        with pytest.raises(ArtifactResolutionError, match="not found"):
            maven.declared_dependencies(Artifact("org.example", "ghost", "1.0"))


class TestFailures:
    @patch("registry.maven.client.safe_get")
    def test_http_error_status(self, mock_get, maven):
        mock_get.return_value = MagicMock(status_code=503, text="")
        with pytest.raises(ArtifactResolutionError, match="HTTP 503"):
            maven.declared_dependencies(Artifact("org.example", "lib", "1.0"))

    @patch("registry.maven.client.safe_get")
    def test_connection_error(self, mock_get, maven):
        mock_get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ArtifactResolutionError, match="Could not fetch"):
            maven.available_versions("org.example", "util")

    @patch("registry.maven.client.safe_get")
    def test_unreadable_pom(self, mock_get, maven):
        mock_get.return_value = MagicMock(status_code=200, text="<project>")
        with pytest.raises(ArtifactResolutionError, match="Unreadable POM"):
            maven.declared_dependencies(Artifact("org.example", "lib", "1.0"))
