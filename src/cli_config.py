"""Check configuration: config file loading, environment and CLI overrides.

Precedence, lowest to highest: built-in defaults, the config file
(``-c/--config``, YAML or JSON), ``DEPVERSIONS_*`` environment variables,
command line flags. Unlike most settings in this tool, malformed
configuration is fatal: every problem raises ``ConfigurationError`` before
any resolution work starts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from common.config_files import load_mapping
from constants import Constants
from errors import ConfigurationError
from versioning.models import ResolverDefinition, VersionCheckExclude

logger = logging.getLogger(__name__)

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


@dataclass
class CheckConfig:
    """Settings for one check or list run."""
    skip: bool = False
    default_strategy: str = Constants.DEFAULT_STRATEGY
    resolvers: List[ResolverDefinition] = field(default_factory=list)
    exceptions: List[VersionCheckExclude] = field(default_factory=list)
    warn_if_major_version_is_higher: bool = False
    fail_build_in_case_of_conflict: bool = False
    scope: str = Constants.DEFAULT_SCOPE
    direct_only: bool = False
    conflicts_only: bool = False
    use_parallel_resolution: bool = True


def as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"'{key}' must be a boolean, got {value!r}")


def _optional_text(entry: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = entry.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _resolver(entry: Any) -> ResolverDefinition:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Malformed resolver entry: {entry!r}")
    strategy_name = _optional_text(entry, "strategyName", "strategy")
    if not strategy_name:
        raise ConfigurationError(f"Resolver entry needs a strategyName: {dict(entry)!r}")
    includes = entry.get("includes") or []
    if isinstance(includes, str):
        includes = includes.split(",")
    if not isinstance(includes, list):
        raise ConfigurationError(f"Resolver includes must be a list: {includes!r}")
    return ResolverDefinition(
        strategy_name=strategy_name,
        includes=tuple(str(i).strip() for i in includes if str(i).strip()),
        id=_optional_text(entry, "id"),
    )


def _exclude(entry: Any) -> VersionCheckExclude:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Malformed exception entry: {entry!r}")
    return VersionCheckExclude(
        group_id=_optional_text(entry, "groupId"),
        artifact_id=_optional_text(entry, "artifactId"),
        expected_version=_optional_text(entry, "expectedVersion"),
        resolved_version=_optional_text(entry, "resolvedVersion"),
        classifier=_optional_text(entry, "classifier"),
        type=_optional_text(entry, "type") or Constants.DEFAULT_TYPE,
    )


def config_from_mapping(data: Mapping[str, Any]) -> CheckConfig:
    """Build a CheckConfig from camelCase keys.

    Raises:
        ConfigurationError: for malformed values.
    """
    config = CheckConfig()
    if "skip" in data:
        config.skip = as_bool(data["skip"], "skip")
    if data.get("defaultStrategy") is not None:
        config.default_strategy = str(data["defaultStrategy"]).strip()

    resolvers = data.get("resolvers") or []
    if not isinstance(resolvers, list):
        raise ConfigurationError("'resolvers' must be a list")
    config.resolvers = [_resolver(r) for r in resolvers]

    exceptions = data.get("exceptions")
    if exceptions is None:
        exceptions = data.get("excludes")
    if not isinstance(exceptions or [], list):
        raise ConfigurationError("'exceptions' must be a list")
    config.exceptions = [_exclude(e) for e in exceptions or []]

    if "warnIfMajorVersionIsHigher" in data:
        config.warn_if_major_version_is_higher = as_bool(
            data["warnIfMajorVersionIsHigher"], "warnIfMajorVersionIsHigher")
    if "failBuildInCaseOfConflict" in data:
        config.fail_build_in_case_of_conflict = as_bool(
            data["failBuildInCaseOfConflict"], "failBuildInCaseOfConflict")
    if data.get("scope") is not None:
        config.scope = str(data["scope"]).strip().lower()
    if "directOnly" in data:
        config.direct_only = as_bool(data["directOnly"], "directOnly")
    if "conflictsOnly" in data:
        config.conflicts_only = as_bool(data["conflictsOnly"], "conflictsOnly")
    if "useParallelResolution" in data:
        config.use_parallel_resolution = as_bool(data["useParallelResolution"], "useParallelResolution")
    return config


def load_config_file(path: str) -> CheckConfig:
    """Read a YAML or JSON config file.

    Raises:
        OSError: if the file cannot be read.
        ConfigurationError: if it is malformed.
    """
    return config_from_mapping(load_mapping(path))


def apply_env_overrides(config: CheckConfig) -> None:
    value = os.environ.get(Constants.ENV_USE_PARALLEL_RESOLUTION)
    if value is not None and value.strip():
        config.use_parallel_resolution = as_bool(value, Constants.ENV_USE_PARALLEL_RESOLUTION)


def apply_cli_overrides(config: CheckConfig, args) -> None:
    """Apply command line flags; flags left unset keep the configured value."""
    if getattr(args, "DEFAULT_STRATEGY", None):
        config.default_strategy = args.DEFAULT_STRATEGY
    if getattr(args, "FAIL_ON_CONFLICT", None):
        config.fail_build_in_case_of_conflict = True
    if getattr(args, "WARN_MAJOR", None):
        config.warn_if_major_version_is_higher = True
    if getattr(args, "SEQUENTIAL", None):
        config.use_parallel_resolution = False
    if getattr(args, "SCOPE", None):
        config.scope = args.SCOPE
    if getattr(args, "DIRECT_ONLY", None):
        config.direct_only = True
    if getattr(args, "CONFLICTS_ONLY", None):
        config.conflicts_only = True


def build_check_config(args) -> CheckConfig:
    """Resolve the effective configuration for a run.

    Raises:
        OSError: if the config file cannot be read.
        ConfigurationError: if any layer is malformed or the scope is invalid.
    """
    path = getattr(args, "CONFIG", None)
    if path:
        config = load_config_file(path)
        logger.info("Loaded configuration from %s", path)
    else:
        config = CheckConfig()
    apply_env_overrides(config)
    apply_cli_overrides(config, args)

    if config.scope not in Constants.LIST_SCOPES:
        raise ConfigurationError(f"Scope '{config.scope}' is invalid!")
    return config
