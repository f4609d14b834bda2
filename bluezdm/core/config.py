"""Configuration loading and validation for bluezdm."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from bluezdm.core.errors import ConfigLoadError, ConfigValidationError

DEFAULT_DISCOVERY_TIMEOUT_MS = 5000
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    bus: str = "system"
    discovery_timeout_ms: int = DEFAULT_DISCOVERY_TIMEOUT_MS
    default_adapter: str | None = None
    call_timeout_s: float | None = None


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "bluezdm" / "config.yaml"


@lru_cache(maxsize=1)
def _schema_validator() -> Draft202012Validator:
    schema_file = resources.files("bluezdm.schemas").joinpath("config.schema.json")
    schema = json.loads(schema_file.read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _check_unique_keys(node: yaml.Node, path: Path) -> None:
    """Walk a composed YAML tree and reject mappings that repeat a key."""
    if isinstance(node, yaml.MappingNode):
        seen: set[str] = set()
        for key_node, value_node in node.value:
            key = key_node.value
            if isinstance(key, str):
                if key in seen:
                    line = key_node.start_mark.line + 1
                    raise ConfigValidationError(f"Duplicate key '{key}' in {path} at line {line}")
                seen.add(key)
            _check_unique_keys(value_node, path)
    elif isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _check_unique_keys(item, path)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    loader = yaml.SafeLoader(content)
    try:
        root = loader.get_single_node()
        if root is None:
            return {}
        _check_unique_keys(root, path)
        loaded = loader.construct_document(root)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc
    finally:
        loader.dispose()

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], path: Path) -> None:
    error = best_match(_schema_validator().iter_errors(doc))
    if error is None:
        return
    where = ".".join(str(part) for part in error.absolute_path)
    where = f" ({where})" if where else ""
    raise ConfigValidationError(f"Schema validation failed for {path}{where}: {error.message}")


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from path, or from the XDG config location.

    A missing file at the default location yields default settings; a
    missing explicitly given file is an error.
    """
    if path is None:
        path = default_config_path()
        if not path.is_file():
            LOGGER.debug("No config file at %s, using defaults", path)
            return Settings()

    doc = _read_yaml(path)
    _validate(doc, path)

    call_timeout = doc.get("call_timeout_s")
    return Settings(
        bus=doc.get("bus", "system"),
        discovery_timeout_ms=int(doc.get("discovery_timeout_ms", DEFAULT_DISCOVERY_TIMEOUT_MS)),
        default_adapter=doc.get("default_adapter"),
        call_timeout_s=float(call_timeout) if call_timeout is not None else None,
    )
