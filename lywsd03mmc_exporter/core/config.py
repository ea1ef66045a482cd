"""Exporter configuration loaded from an optional YAML file."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from lywsd03mmc_exporter.core.errors import ConfigLoadError, ConfigValidationError
from lywsd03mmc_exporter.core.model import ExporterConfig

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("lywsd03mmc_exporter.schemas").joinpath(
        "config.schema.json"
    ).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "lywsd03mmc-exporter" / "config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> ExporterConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = ExporterConfig()
    keys = doc.get("keys")
    return ExporterConfig(
        listen=doc.get("listen", defaults.listen),
        device=int(doc.get("device", defaults.device)),
        keys=Path(keys).expanduser() if keys else None,
        vendor_prefix=doc.get("vendor_prefix", defaults.vendor_prefix).upper(),
        sweep_interval=float(doc.get("sweep_interval", defaults.sweep_interval)),
    )


def load_config(path: Path | None = None) -> ExporterConfig:
    """Load the config file, or defaults when no file is present.

    An explicitly given path must exist; the default location is optional.
    """
    if path is None:
        path = default_config_path()
        if not path.is_file():
            return ExporterConfig()
    config = build_config(_read_yaml(path), path)
    LOGGER.debug("loaded config from %s", path)
    return config
