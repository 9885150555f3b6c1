"""Tests for the graph manifest resolution service and the declared-graph closure."""
import json

import pytest

from errors import ArtifactResolutionError, ConfigurationError
from registry.base import is_excluded, mediate_scope
from registry.manifest import ManifestResolutionService, project_from_mapping
from versioning.models import Artifact, Dependency, ProjectModel

MANIFEST = """
project:
  groupId: com.example
  artifactId: app
  version: "1.0"
  dependencies:
    - {groupId: g, artifactId: a, version: "2.0"}
    - groupId: g
      artifactId: t
      version: "1.0"
      scope: test
      exclusions:
        - {groupId: g, artifactId: x}
artifacts:
  "g:a:2.0":
    - {groupId: g, artifactId: b, version: "[1.0,2.0)"}
  "g:b:1.4":
    - {groupId: g, artifactId: c, version: "3.1"}
  "g:b:1.2": []
"""


def dep(artifact_id, version="1.0", **kwargs):
    return Dependency("g", artifact_id, version, **kwargs)


@pytest.fixture
def manifest_file(tmp_path):
    path = tmp_path / "graph.yaml"
    path.write_text(MANIFEST, encoding="utf-8")
    return str(path)


class TestFromFile:
    def test_project_section(self, manifest_file):
        service = ManifestResolutionService.from_file(manifest_file)
        assert service.project.qualified_name == "com.example:app"
        assert [d.qualified_name for d in service.project.dependencies] == ["g:a", "g:t"]
        assert service.project.dependencies[1].exclusions == ("g:x",)

    def test_closure_when_nothing_resolved(self, manifest_file):
        resolved = ManifestResolutionService.from_file(manifest_file).resolved_project_artifacts()
        assert {name: a.version for name, a in resolved.items()} == {
            "g:a": "2.0", "g:b": "1.4", "g:c": "3.1", "g:t": "1.0",
        }
        assert resolved["g:t"].scope == "test"
        assert resolved["g:b"].version_range == "[1.0,2.0)"

    def test_explicit_project_wins(self, manifest_file):
        project = ProjectModel("other", "project", "9", [dep("a", "2.0")])
        service = ManifestResolutionService.from_file(manifest_file, project)
        assert service.project is project

    def test_requires_a_project(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({"artifacts": {}}), encoding="utf-8")
        with pytest.raises(ConfigurationError, match="no project section"):
            ManifestResolutionService.from_file(str(path))

    def test_explicit_resolved_section(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({
            "project": {"dependencies": [{"groupId": "g", "artifactId": "a", "version": "2.0"}]},
            "resolved": [{"groupId": "g", "artifactId": "a", "version": "2.3.1", "versionRange": "2.0"}],
        }), encoding="utf-8")
        service = ManifestResolutionService.from_file(str(path))
        artifact = service.resolved_project_artifacts()["g:a"]
        assert artifact.version == "2.3.1"
        assert artifact.as_version().raw_version == "2.0"

    def test_malformed_dependency(self, tmp_path):
        path = tmp_path / "graph.yaml"
        path.write_text("project:\n  dependencies:\n    - {artifactId: a}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ManifestResolutionService.from_file(str(path))

    def test_dependency_management(self):
        project = project_from_mapping({
            "dependencies": [],
            "dependencyManagement": [{"groupId": "g", "artifactId": "b", "version": "2.0"}],
        })
        assert project.managed_versions == {"g:b": "2.0"}


class TestTransitiveClosure:
    def service(self, declarations, project=None):
        return ManifestResolutionService(project or ProjectModel("p", "p", "1"), declarations)

    def test_scopes_and_optionals(self):
        service = self.service({
            "g:root:1.0": [dep("b"), dep("c", scope="test"), dep("d", optional=True),
                           dep("e", scope="runtime")],
            "g:b:1.0": [dep("f"), dep("p", scope="provided")],
        })
        found = service.resolve_transitive_dependencies(
            Artifact("g", "root", "1.0"), ("compile", "system", "runtime"))
        assert {a.qualified_name: a.scope for a in found} == {
            "g:b": "compile", "g:e": "runtime", "g:f": "compile",
        }

    def test_include_optional(self):
        service = self.service({"g:root:1.0": [dep("d", optional=True)]})
        found = service.resolve_transitive_dependencies(
            Artifact("g", "root", "1.0"), ("compile",), include_optional=True)
        assert {a.qualified_name for a in found} == {"g:d"}

    def test_exclusions_apply_to_the_subtree(self):
        service = self.service({
            "g:root:1.0": [dep("b", exclusions=("g:f",))],
            "g:b:1.0": [dep("f"), dep("h")],
        })
        found = service.resolve_transitive_dependencies(Artifact("g", "root", "1.0"), ("compile",))
        assert {a.qualified_name for a in found} == {"g:b", "g:h"}

        found = service.resolve_transitive_dependencies(
            Artifact("g", "root", "1.0"), ("compile",), exclusions=("g:*",))
        assert found == set()

    def test_nearest_declaration_wins(self):
        service = self.service({
            "g:root:1.0": [dep("b"), dep("c", "2.0")],
            "g:b:1.0": [dep("c", "1.0")],
        })
        found = service.resolve_transitive_dependencies(Artifact("g", "root", "1.0"), ("compile",))
        assert {a.qualified_name: a.version for a in found} == {"g:b": "1.0", "g:c": "2.0"}

    def test_runtime_parent_makes_children_runtime(self):
        service = self.service({
            "g:root:1.0": [dep("b", scope="runtime")],
            "g:b:1.0": [dep("c")],
        })
        found = service.resolve_transitive_dependencies(
            Artifact("g", "root", "1.0"), ("compile", "runtime"))
        assert {a.qualified_name: a.scope for a in found} == {"g:b": "runtime", "g:c": "runtime"}

    def test_missing_versions_raise_with_partial_result(self):
        service = self.service({"g:root:1.0": [dep("b"), dep("z", "[5.0,6.0)")]})
        with pytest.raises(ArtifactResolutionError) as excinfo:
            service.resolve_transitive_dependencies(Artifact("g", "root", "1.0"), ("compile",))
        assert excinfo.value.missing == ["g:z"]
        assert {a.qualified_name for a in excinfo.value.resolved_artifacts} == {"g:b"}

    def test_managed_versions_pin_transitive_dependencies(self):
        project = ProjectModel("p", "p", "1", [dep("a", "1.0")], managed_versions={"g:b": "2.0", "g:a": "9.9"})
        service = self.service({"g:a:1.0": [dep("b", "1.0")]}, project)
        resolved = service.resolved_project_artifacts()
        assert resolved["g:a"].version == "1.0"
        assert resolved["g:b"].version == "2.0"

    def test_project_closure_reports_missing(self):
        project = ProjectModel("p", "p", "1", [dep("a"), dep("x", "[5.0,6.0)")])
        service = self.service({}, project)
        with pytest.raises(ArtifactResolutionError) as excinfo:
            service.resolved_project_artifacts()
        assert excinfo.value.missing == ["g:x"]
        assert {a.qualified_name for a in excinfo.value.resolved_artifacts} == {"g:a"}


class TestHelpers:
    @pytest.mark.parametrize("parent,child,result", [
        ("compile", None, "compile"),
        ("compile", "runtime", "runtime"),
        ("runtime", "compile", "runtime"),
        ("test", "compile", "test"),
        ("provided", "runtime", "provided"),
        ("compile", "test", None),
        ("compile", "provided", None),
        ("compile", "system", None),
    ])
    def test_mediate_scope(self, parent, child, result):
        assert mediate_scope(parent, child) == result

    def test_is_excluded(self):
        assert is_excluded(dep("b"), ["g:b"])
        assert is_excluded(dep("b"), ["*:*"])
        assert is_excluded(dep("b"), ["g"])
        assert not is_excluded(dep("b"), ["g:c", "h:*"])
