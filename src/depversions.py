"""depversions - Dependency version compatibility checker

    Walks a Maven project's dependency graph and reports every artifact whose
    resolved version is not compatible with a version some consumer expected.

    Returns:
        int: Exit code
"""
import logging
import os
import sys

from args import parse_args
from cli_config import CheckConfig, build_check_config
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from errors import ConfigurationError, ConflictDetectedError
from registry.manifest import ManifestResolutionService
from registry.maven.client import MavenRepositoryResolutionService
from registry.maven.pom import load_project
from resolution.report import ConflictReporter, render_listing
from resolution.walker import ResolutionSession
from versioning.strategy_registry import StrategyRegistry

logger = logging.getLogger(__name__)


def load_config(args) -> CheckConfig:
    """Loads the effective configuration or exits.

    Args:
        args (argparse.Namespace): Parsed command line arguments.

    Returns:
        CheckConfig: Effective configuration.
    """
    try:
        return build_check_config(args)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(ExitCodes.CONFIGURATION_ERROR.value)
    except OSError as e:
        logger.error("Could not read configuration file: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def load_inputs(args):
    """Loads the project model and builds the matching resolution service.

    A graph manifest (``--graph``) is used when given; otherwise POMs are
    fetched from the configured Maven repository, which is also what
    ``--remote`` asks for explicitly.

    Returns:
        tuple: (ProjectModel, ArtifactResolutionService)
    """
    try:
        if args.GRAPH:
            project = load_project(args.POM) if args.POM else None
            service = ManifestResolutionService.from_file(args.GRAPH, project)
            return service.project, service
        project = load_project(args.POM or Constants.POM_XML_FILE)
        return project, MavenRepositoryResolutionService(project, args.REPOSITORY)
    except FileNotFoundError as e:
        logger.error("File not found: %s, aborting", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    except OSError as e:
        logger.error("IO error: %s, aborting", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    except ConfigurationError as e:
        logger.error("Invalid project input: %s", e)
        sys.exit(ExitCodes.CONFIGURATION_ERROR.value)


def run_check(session: ResolutionSession, config: CheckConfig) -> int:
    """Checks the whole graph and reports conflicts.

    Returns:
        int: Exit code
    """
    resolution_map = session.build_resolution_map(None)
    report = ConflictReporter(config.fail_build_in_case_of_conflict).report(
        resolution_map, session.direct_dependency_names()
    )
    try:
        report.raise_for_conflicts()
    except ConflictDetectedError as e:
        logger.error("%s", e)
        return ExitCodes.CONFLICTS_FOUND.value
    return ExitCodes.SUCCESS.value


def run_list(session: ResolutionSession, config: CheckConfig) -> int:
    """Lists the resolved dependencies of one scope.

    Returns:
        int: Exit code
    """
    resolution_map = session.build_resolution_map(config.scope)
    kind = "Direct" if config.direct_only else "Transitive"
    logger.info("%s dependencies for scope '%s':", kind, config.scope)
    for line in render_listing(resolution_map, config.direct_only, config.conflicts_only):
        logger.info("%s", line)
    return ExitCodes.SUCCESS.value


def run(args) -> int:
    """Runs one command with already parsed arguments.

    Returns:
        int: Exit code
    """
    config = load_config(args)
    if config.skip:
        logger.info("Skipping plugin execution")
        return ExitCodes.SUCCESS.value

    project, service = load_inputs(args)
    try:
        registry = StrategyRegistry(config.default_strategy, config.resolvers)
        session = ResolutionSession(
            project,
            service,
            registry,
            excludes=config.exceptions,
            warn_if_major_version_is_higher=config.warn_if_major_version_is_higher,
            use_parallel_resolution=config.use_parallel_resolution,
        )
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return ExitCodes.CONFIGURATION_ERROR.value

    if is_debug_enabled(logger):
        logger.debug(
            "Starting run",
            extra=extra_context(
                event="start", component="cli", action=args.command,
                project=project.qualified_name, dependencies=len(project.dependencies),
                parallel=config.use_parallel_resolution,
            ),
        )

    with session:
        if args.command == "list":
            return run_list(session, config)
        return run_check(session, config)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)

    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(getattr(args, "LOG_FILE", None))

    sys.exit(run(args))


if __name__ == "__main__":
    main()
