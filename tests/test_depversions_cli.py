"""End-to-end tests for the depversions command line."""
import logging

import pytest
import yaml

from args import parse_args
from constants import Constants, ExitCodes
from depversions import load_inputs, main
from registry.manifest import ManifestResolutionService
from registry.maven.client import MavenRepositoryResolutionService

GRAPH = {
    "project": {
        "groupId": "com.example",
        "artifactId": "app",
        "version": "1.0",
        "dependencies": [
            {"groupId": "g", "artifactId": "a", "version": "2.0"},
            {"groupId": "g", "artifactId": "c", "version": "3.0.0"},
        ],
    },
    "resolved": [
        {"groupId": "g", "artifactId": "a", "version": "2.3.1", "versionRange": "2.0"},
        {"groupId": "g", "artifactId": "c", "version": "2.9.0", "versionRange": "3.0.0"},
        {"groupId": "g", "artifactId": "d", "version": "1.9"},
    ],
    "artifacts": {
        "g:a:2.3.1": [{"groupId": "g", "artifactId": "d", "version": "2.0"}],
    },
}


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    monkeypatch.setenv(Constants.ENV_LOG_LEVEL, "INFO")
    monkeypatch.delenv(Constants.ENV_LOG_FORMAT, raising=False)
    monkeypatch.delenv(Constants.ENV_USE_PARALLEL_RESOLUTION, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def graph(tmp_path):
    path = tmp_path / "graph.yaml"
    path.write_text(yaml.safe_dump(GRAPH), encoding="utf-8")
    return str(path)


def write_config(tmp_path, data):
    path = tmp_path / "depversions.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def run(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


class TestCheck:
    def test_conflicts_are_reported_as_warnings(self, graph, capsys):
        assert run(["check", "--graph", graph]) == ExitCodes.SUCCESS.value
        err = capsys.readouterr().err
        assert "[WARNING] Found a problem with the direct dependency g:c of the current project" in err
        assert "  Expected version is 3.0.0\n  Resolved version is 2.9.0" in err
        assert "[WARNING] Found a problem with the dependency g:d" in err

    def test_fail_on_conflict(self, graph, capsys):
        assert run(["check", "--graph", graph, "--fail-on-conflict"]) == ExitCodes.CONFLICTS_FOUND.value
        assert "[ERROR] Found dependency version conflicts: g:c, g:d" in capsys.readouterr().err

    def test_exceptions_suppress_conflicts(self, graph, tmp_path, capsys):
        config = write_config(tmp_path, {
            "failBuildInCaseOfConflict": True,
            "exceptions": [
                {"groupId": "g", "artifactId": "c", "expectedVersion": "3.0.0", "resolvedVersion": "2.9.0"},
                {"groupId": "g", "artifactId": "d", "expectedVersion": "2.0", "resolvedVersion": "1.9"},
            ],
        })
        assert run(["check", "--graph", graph, "-c", config, "--sequential"]) == ExitCodes.SUCCESS.value
        assert "No dependency version conflicts found" in capsys.readouterr().err

    def test_resolver_rules(self, graph, tmp_path):
        config = write_config(tmp_path, {
            "failBuildInCaseOfConflict": True,
            "resolvers": [{"strategyName": "two-digits-backward-compatible", "includes": ["g"]}],
        })
        # lower majors pass because both (empty) qualifiers match
        assert run(["check", "--graph", graph, "-c", config]) == ExitCodes.SUCCESS.value

    def test_skip(self, graph, tmp_path, capsys):
        config = write_config(tmp_path, {"skip": True, "failBuildInCaseOfConflict": True})
        assert run(["check", "--graph", graph, "-c", config]) == ExitCodes.SUCCESS.value
        assert "Skipping plugin execution" in capsys.readouterr().err


class TestList:
    def test_listing(self, graph, capsys):
        assert run(["list", "--graph", graph]) == ExitCodes.SUCCESS.value
        err = capsys.readouterr().err
        assert "[INFO] Transitive dependencies for scope 'compile':" in err
        assert "[INFO] g:a: g:a-2.3.1 (*2.0*)" in err
        assert "[INFO] g:c: g:c-2.9.0 (!*3.0.0*!)" in err
        assert "[INFO] g:d: g:d-1.9 (!2.0!)" in err

    def test_direct_only(self, graph, capsys):
        assert run(["list", "--graph", graph, "--direct-only", "--scope", "test"]) == ExitCodes.SUCCESS.value
        err = capsys.readouterr().err
        assert "[INFO] Direct dependencies for scope 'test':" in err
        assert "g:d-1.9" not in err


class TestErrors:
    def test_unknown_strategy(self, graph, capsys):
        assert run(["check", "--graph", graph, "--default-strategy", "newest"]) \
            == ExitCodes.CONFIGURATION_ERROR.value
        assert "Unknown version strategy 'newest'" in capsys.readouterr().err

    def test_illegal_exclusion(self, graph, tmp_path):
        config = write_config(tmp_path, {"exceptions": [{"groupId": "g", "expectedVersion": "1"}]})
        assert run(["check", "--graph", graph, "-c", config]) == ExitCodes.CONFIGURATION_ERROR.value

    def test_malformed_config(self, graph, tmp_path):
        config = write_config(tmp_path, {"useParallelResolution": "sometimes"})
        assert run(["check", "--graph", graph, "-c", config]) == ExitCodes.CONFIGURATION_ERROR.value

    def test_missing_config(self, graph, tmp_path):
        assert run(["check", "--graph", graph, "-c", str(tmp_path / "nope.yaml")]) \
            == ExitCodes.FILE_ERROR.value

    def test_missing_graph(self, tmp_path, capsys):
        assert run(["check", "--graph", str(tmp_path / "nope.yaml")]) == ExitCodes.FILE_ERROR.value
        assert "File not found" in capsys.readouterr().err

    def test_missing_pom(self, tmp_path):
        assert run(["check", "--pom", str(tmp_path / "pom.xml")]) == ExitCodes.FILE_ERROR.value


class TestInputs:
    POM = """<project xmlns="http://maven.apache.org/POM/4.0.0">
  <groupId>com.example</groupId>
  <artifactId>app</artifactId>
  <version>1.0</version>
</project>
"""

    def test_remote_uses_the_repository(self, tmp_path):
        (tmp_path / "pom.xml").write_text(self.POM, encoding="utf-8")
        args = parse_args(["check", "--remote", "--pom", str(tmp_path),
                           "--repository", "https://repo.example.org/maven2/"])
        assert args.REMOTE
        project, service = load_inputs(args)
        assert isinstance(service, MavenRepositoryResolutionService)
        assert service.repository_url == "https://repo.example.org/maven2"
        assert project.artifact_id == "app"

    def test_graph_uses_the_manifest(self, graph):
        project, service = load_inputs(parse_args(["list", "--graph", graph]))
        assert isinstance(service, ManifestResolutionService)
        assert [d.qualified_name for d in project.dependencies] == ["g:a", "g:c"]
