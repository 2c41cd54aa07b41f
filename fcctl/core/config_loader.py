"""Loading and validation of the YAML config file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, TextIO

import yaml
from jsonschema import ValidationError, validators

from fcctl.core.errors import ConfigLoadError, ConfigValidationError
from fcctl.core.model import SessionOptions

CONFIG_FILE_NAME = "config.yaml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Keep YAML 1.1 words such as "on"/"no" as strings; only true/false are booleans.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


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


@dataclass(frozen=True)
class FileConfig:
    port: str | None = None
    baud_rate: int | None = None
    enable_debug_trace: bool | None = None
    codec: str | None = None
    source_dir: Path | None = None
    target: str | None = None
    retry_interval_s: float | None = None
    source: Path | None = None


def _load_schema_validator() -> Any:
    schema_text = resources.files("fcctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "fcctl" / CONFIG_FILE_NAME


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "on", "yes"}:
            return True
        if lowered in {"false", "off", "no"}:
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


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


def _build_config(doc: dict[str, Any], source: Path) -> FileConfig:
    if "enable_debug_trace" in doc:
        doc = dict(doc)
        doc["enable_debug_trace"] = _normalize_bool(
            doc["enable_debug_trace"],
            context=f"{source}: enable_debug_trace",
        )

    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    source_dir = doc.get("source_dir")
    retry = doc.get("retry_interval_s")
    return FileConfig(
        port=doc.get("port"),
        baud_rate=doc.get("baud_rate"),
        enable_debug_trace=doc.get("enable_debug_trace"),
        codec=doc.get("codec"),
        source_dir=Path(source_dir).expanduser() if source_dir else None,
        target=doc.get("target"),
        retry_interval_s=float(retry) if retry is not None else None,
        source=source,
    )


def load_config(path: Path | None = None) -> FileConfig:
    """Load the config file, falling back to empty settings when it does not exist."""
    config_path = path or default_config_path()
    if not config_path.exists():
        if path is not None:
            raise ConfigLoadError(f"Config file {config_path} does not exist")
        LOGGER.debug("No config file at %s", config_path)
        return FileConfig()

    LOGGER.debug("Loading config from %s", config_path)
    return _build_config(_read_yaml(config_path), config_path)


def build_options(
    config: FileConfig,
    *,
    port: str | None = None,
    baud_rate: int | None = None,
    enable_debug_trace: bool | None = None,
    codec: str | None = None,
    source_dir: Path | None = None,
    target: str | None = None,
    stdout: TextIO | None = None,
) -> SessionOptions:
    """Merge explicit overrides over file settings into SessionOptions."""
    resolved_port = port or config.port
    if not resolved_port:
        raise ConfigValidationError("No serial port given. Use --port or set 'port' in the config file.")

    defaults = SessionOptions(port=resolved_port)
    return SessionOptions(
        port=resolved_port,
        baud_rate=_first(baud_rate, config.baud_rate, defaults.baud_rate),
        enable_debug_trace=_first(enable_debug_trace, config.enable_debug_trace, defaults.enable_debug_trace),
        stdout=stdout,
        codec=codec or config.codec,
        source_dir=_first(source_dir, config.source_dir, defaults.source_dir),
        target=target or config.target,
        retry_interval_s=_first(None, config.retry_interval_s, defaults.retry_interval_s),
    )


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None
