"""Layered YAML configuration for the feedsync agent."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = REPO_ROOT / "config"
DEFAULT_HOME = "/var/lib/feedsync"
ENV_PREFIX = "FEEDSYNC_"

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]

SchemaSpec = Dict[str, Any]


CONFIG_SCHEMA: SchemaSpec = {
    "runtime": {
        "type": dict,
        "schema": {
            "name": {"type": str, "default": "feedsync"},
        },
        "default": {},
    },
    "logging": {
        "type": dict,
        "schema": {
            "level": {"type": str, "default": "INFO"},
            "structured": {"type": bool, "default": True},
        },
        "default": {},
    },
    "storage": {
        "type": dict,
        "schema": {
            "url": {"type": str, "default": "http://localhost:8080"},
            "metrics_context": {"type": str, "default": "/hawkular/metrics/"},
            "tenant_id": {"type": str, "default": ""},
            "feed_id": {"type": str, "default": ""},
            "chunk_size": {"type": int, "default": 4096, "min": 1},
            "timeout": {"type": (int, float), "default": 30.0, "min": 0},
        },
        "default": {},
    },
    "inventory": {
        "type": dict,
        "schema": {
            "enabled": {"type": bool, "default": True},
            "snapshot": {"type": str, "default": ""},
        },
        "default": {},
    },
}

# Environment variables that override individual settings.
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "FEEDSYNC_STORAGE_URL": ("storage", "url"),
    "FEEDSYNC_TENANT_ID": ("storage", "tenant_id"),
    "FEEDSYNC_FEED_ID": ("storage", "feed_id"),
    "FEEDSYNC_LOG_LEVEL": ("logging", "level"),
}


@dataclass
class Diagnostic:
    """A configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """Everything the agent needs from configuration at runtime."""

    home_dir: Path
    status: ConfigurationStatus
    merged: Dict[str, Any] = field(default_factory=dict)
    repo_defaults: Dict[str, Any] = field(default_factory=dict)
    home_overrides: Dict[str, Any] = field(default_factory=dict)
    env_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None

    def section(self, name: str) -> Dict[str, Any]:
        value = self.merged.get(name) if self.merged else None
        return value if isinstance(value, dict) else {}

    @property
    def has_errors(self) -> bool:
        return any(diag.level == "error" for diag in self.diagnostics)


def resolve_home_dir(
    env: Optional[Mapping[str, str]] = None,
    default: str = DEFAULT_HOME,
) -> Path:
    """Resolve the agent home directory from ``FEEDSYNC_HOME``."""

    env_source = os.environ if env is None else env
    return Path(env_source.get("FEEDSYNC_HOME", default)).expanduser()


def load_runtime_configuration(
    home_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ConfigurationBundle:
    """Load repo defaults, home-directory overrides and environment overrides."""

    env_source = os.environ if env is None else env
    resolved_home = home_dir or resolve_home_dir(env_source)
    diagnostics: List[Diagnostic] = []
    files_loaded: List[Path] = []

    repo_defaults, repo_files = _load_directory_configs(
        DEFAULT_CONFIG_DIR,
        diagnostics,
        label="repo defaults",
    )
    files_loaded.extend(repo_files)

    status: ConfigurationStatus = "ready"
    home_overrides: Dict[str, Any] = {}

    if not resolved_home.exists():
        diagnostics.append(
            Diagnostic(level="error", message=f"Home directory '{resolved_home}' does not exist.")
        )
        status = "missing"
    elif not resolved_home.is_dir():
        diagnostics.append(
            Diagnostic(level="error", message=f"Home path '{resolved_home}' is not a directory.")
        )
        status = "invalid"
    else:
        home_overrides, override_files = _load_directory_configs(
            resolved_home / "config",
            diagnostics,
            label="home overrides",
        )
        files_loaded.extend(override_files)

    env_overrides = _environment_overrides(env_source)

    merged = deepcopy(repo_defaults)
    _deep_merge_dicts(merged, home_overrides)
    _deep_merge_dicts(merged, env_overrides)
    _validate_section(merged, CONFIG_SCHEMA, "config", diagnostics)

    if status == "ready" and any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ConfigurationBundle(
        home_dir=resolved_home,
        status=status,
        merged=merged,
        repo_defaults=repo_defaults,
        home_overrides=home_overrides,
        env_overrides=env_overrides,
        files_loaded=files_loaded,
        diagnostics=diagnostics,
    )


def _environment_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def _load_directory_configs(
    directory: Path,
    diagnostics: List[Diagnostic],
    label: str,
) -> Tuple[Dict[str, Any], List[Path]]:
    """Merge every YAML file of a directory in name order."""

    data: Dict[str, Any] = {}
    loaded_files: List[Path] = []

    if not directory.is_dir():
        level: DiagnosticLevel = "error" if directory.exists() else "warning"
        diagnostics.append(
            Diagnostic(
                level=level,
                message=f"No configuration directory at '{directory}' ({label}).",
                source=directory,
            )
        )
        return data, loaded_files

    for yaml_file in sorted(directory.glob("*.yml")) + sorted(directory.glob("*.yaml")):
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            diagnostics.append(
                Diagnostic(level="error", message=f"Failed to parse '{yaml_file}': {exc}", source=yaml_file)
            )
            continue

        if content is not None and not isinstance(content, MutableMapping):
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Ignoring '{yaml_file}' because it does not contain a mapping.",
                    source=yaml_file,
                )
            )
            continue

        _deep_merge_dicts(data, dict(content or {}))
        loaded_files.append(yaml_file)

    return data, loaded_files


def _deep_merge_dicts(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(dest.get(key), MutableMapping) and isinstance(value, Mapping):
            _deep_merge_dicts(dest[key], value)
        else:
            dest[key] = deepcopy(value)


def _validate_section(
    target: Dict[str, Any],
    schema: SchemaSpec,
    path: str,
    diagnostics: List[Diagnostic],
) -> None:
    for key in target:
        if key not in schema:
            diagnostics.append(
                Diagnostic(level="warning", message=f"Unknown configuration key '{path}.{key}'.")
            )

    for key, spec in schema.items():
        child_path = f"{path}.{key}"
        if key not in target:
            target[key] = deepcopy(spec.get("default"))
            continue

        value = _coerce(target[key], spec.get("type"))
        expected = spec.get("type")

        if expected is dict:
            if not isinstance(value, dict):
                diagnostics.append(Diagnostic(level="error", message=f"'{child_path}' must be a mapping."))
                value = {}
            _validate_section(value, spec.get("schema", {}), child_path, diagnostics)
        elif expected and (not isinstance(value, expected) or isinstance(value, bool) and expected is not bool):
            names = expected if isinstance(expected, tuple) else (expected,)
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'{child_path}' must be of type {', '.join(t.__name__ for t in names)}.",
                )
            )
            value = deepcopy(spec.get("default"))
        elif "min" in spec and value < spec["min"]:
            diagnostics.append(
                Diagnostic(level="error", message=f"'{child_path}' must be at least {spec['min']}.")
            )
            value = deepcopy(spec.get("default"))

        target[key] = value


def _coerce(value: Any, expected: Any) -> Any:
    """Convert string values (from the environment) to numeric types."""
    if not isinstance(value, str) or expected in (str, dict, None):
        return value
    try:
        if expected is int:
            return int(value)
        if expected == (int, float):
            return float(value)
    except ValueError:
        return value
    return value


__all__ = [
    "ConfigurationBundle",
    "ConfigurationStatus",
    "DEFAULT_CONFIG_DIR",
    "Diagnostic",
    "load_runtime_configuration",
    "resolve_home_dir",
]
