"""Reading YAML and JSON documents from disk."""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

import yaml

from errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_mapping(path: str, *, what: str = "configuration") -> Dict[str, Any]:
    """Load a YAML (``.yaml``/``.yml``) or JSON (``.json``) file as a mapping.

    An empty document is an empty mapping.

    Raises:
        OSError: if the file cannot be read.
        ConfigurationError: if the file does not parse or is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Could not parse {what} file {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"The {what} file {path} must contain a mapping")
    logger.debug("Loaded %s from %s", what, os.path.abspath(path))
    return data
