"""Argument parsing functionality for depversions."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depversions",
        description=(
            "depversions - Dependency version compatibility checker"
        ),
        add_help=True,
    )

    parser.add_argument("command",
                        help="check: report version conflicts; list: list resolved dependencies",
                        choices=["check", "list"])

    parser.add_argument("-p", "--pom",
                        dest="POM",
                        help="Path to the project's pom.xml (or its directory)",
                        action="store",
                        type=str)

    input_group = parser.add_mutually_exclusive_group()
    input_group.add_argument("-g", "--graph",
                             dest="GRAPH",
                             help="Resolve against a graph manifest (YAML or JSON) instead of a repository",
                             action="store",
                             type=str)
    input_group.add_argument("-r", "--remote",
                             dest="REMOTE",
                             help="Resolve by fetching POMs from --repository; this is already the default "
                                  "when --graph is not given",
                             action="store_true")
    parser.add_argument("--repository",
                        dest="REPOSITORY",
                        help="Maven repository base URL (default: Maven Central)",
                        action="store",
                        type=str,
                        default=Constants.MAVEN_CENTRAL_URL)

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--default-strategy",
                        dest="DEFAULT_STRATEGY",
                        help="Strategy used when no resolver rule matches (default: default)",
                        action="store",
                        type=str)
    parser.add_argument("--fail-on-conflict",
                        dest="FAIL_ON_CONFLICT",
                        help="Exit with a non-zero status code if conflicts are found.",
                        action="store_true",
                        default=None)
    parser.add_argument("--warn-if-major-version-is-higher",
                        dest="WARN_MAJOR",
                        help="Warn about excluded dependencies resolved at an incompatible version.",
                        action="store_true",
                        default=None)
    parser.add_argument("--sequential",
                        dest="SEQUENTIAL",
                        help="Resolve dependencies on the calling thread only.",
                        action="store_true",
                        default=None)

    parser.add_argument("-s", "--scope",
                        dest="SCOPE",
                        help="Scope to list (list command only, default: compile)",
                        action="store",
                        type=str.lower,
                        choices=Constants.LIST_SCOPES)
    parser.add_argument("--direct-only",
                        dest="DIRECT_ONLY",
                        help="Only list direct dependencies.",
                        action="store_true",
                        default=None)
    parser.add_argument("--conflicts-only",
                        dest="CONFLICTS_ONLY",
                        help="Only list dependencies with conflicts.",
                        action="store_true",
                        default=None)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
