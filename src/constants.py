"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    CONFLICTS_FOUND = 3
    CONFIGURATION_ERROR = 4


class Scopes(Enum):
    """Dependency scopes understood by the walker and the resolution services.

    Args:
        Enum (string): Maven dependency scope names.
    """

    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    SYSTEM = "system"
    TEST = "test"


# Declared scopes that are part of a build for the requested scope.
# The None key is the union used when no scope is requested.
VISIBLE_SCOPES = {
    "compile": ("compile", "provided", "system"),
    "test": ("compile", "provided", "system", "test"),
    "runtime": ("compile", "system", "runtime"),
    None: ("compile", "provided", "runtime", "system", "test"),
}

# Scopes of a dependency's own dependencies that reach the requested build.
TRANSITIVE_SCOPES = {
    "compile": ("compile", "system"),
    "test": ("compile", "system", "runtime"),
    "runtime": ("compile", "system", "runtime"),
    None: ("compile", "system", "runtime"),
}


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROGRAM_NAME = "depversions"
    ENV_PREFIX = "DEPVERSIONS_"
    ENV_LOG_LEVEL = "DEPVERSIONS_LOG_LEVEL"
    ENV_LOG_FORMAT = "DEPVERSIONS_LOG_FORMAT"
    ENV_USE_PARALLEL_RESOLUTION = "DEPVERSIONS_USE_PARALLEL_RESOLUTION"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"
    POM_XML_FILE = "pom.xml"
    POM_NAMESPACE = "{http://maven.apache.org/POM/4.0.0}"
    MAX_PARENT_DEPTH = 8

    DEFAULT_STRATEGY = "default"
    DEFAULT_SCOPE = Scopes.COMPILE.value
    DEFAULT_TYPE = "jar"
    LIST_SCOPES = [Scopes.COMPILE.value, Scopes.TEST.value, Scopes.RUNTIME.value]
    WORKER_THREADS_PER_CPU = 5
    WORKER_THREAD_PREFIX = "dependency-version-check-worker"
