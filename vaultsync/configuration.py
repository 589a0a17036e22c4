"""Vault-aware configuration loading for vaultsync."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = REPO_ROOT / "config"
STATE_DIR_NAME = ".vaultsync"
VAULT_CONFIG_SUBDIR = "config"

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]


SchemaSpec = Dict[str, Any]

DEFAULT_SYNC_PORT = 56780
DEFAULT_SESSION_TIMEOUT = 30
DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    "*.tmp",
    ".DS_Store",
    "Thumbs.db",
]


CONFIG_SCHEMA: SchemaSpec = {
    "runtime": {
        "type": dict,
        "schema": {
            "name": {"type": str, "default": "vaultsync"},
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
    "ui": {
        "type": dict,
        "schema": {
            "verbose": {"type": bool, "default": True},
        },
        "default": {},
    },
    "sync": {
        "type": dict,
        "schema": {
            "host": {"type": str, "default": "0.0.0.0"},
            "port": {"type": int, "default": DEFAULT_SYNC_PORT, "min": 1, "max": 65535},
            "session_timeout": {
                "type": (int, float),
                "default": DEFAULT_SESSION_TIMEOUT,
                "min": 1,
            },
            "request_timeout": {"type": (int, float), "default": 30, "min": 1},
            "conflict_strategy": {
                "type": str,
                "default": "remote_wins",
                "choices": ("remote_wins", "local_wins", "backup_both", "manual"),
            },
            "state_dir": {"type": str, "default": STATE_DIR_NAME},
            "baseline_file": {"type": str, "default": "baseline.json"},
            "backup_dir": {"type": str, "default": ".sync_backups"},
            "exclude_patterns": {
                "type": list,
                "item_type": str,
                "default_factory": lambda: list(DEFAULT_EXCLUDE_PATTERNS),
            },
        },
        "default": {},
    },
    "network": {
        "type": dict,
        "schema": {
            "preferred_interfaces": {
                "type": list,
                "item_type": str,
                "default_factory": list,
            },
            "include_loopback": {"type": bool, "default": False},
        },
        "default": {},
    },
}


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """All configuration data vaultsync needs at runtime."""

    vault_dir: Path
    status: ConfigurationStatus
    merged: Dict[str, Any] = field(default_factory=dict)
    repo_defaults: Dict[str, Any] = field(default_factory=dict)
    vault_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None

    def section(self, name: str) -> Dict[str, Any]:
        return (self.merged.get(name) or {}) if self.merged else {}


def resolve_vault_dir(
    env: Optional[Mapping[str, str]] = None,
    default: str = ".",
) -> Path:
    """Resolve the vault path from the environment."""

    env_source = env if env is not None else os.environ
    raw = env_source.get("VAULT_DIR", default)
    return Path(raw).expanduser().resolve()


def load_runtime_configuration(vault_dir: Optional[Path] = None) -> ConfigurationBundle:
    """Load repo defaults, then overlay ``<vault>/.vaultsync/config/*.yml``."""

    resolved_vault = vault_dir or resolve_vault_dir()
    diagnostics: List[Diagnostic] = []
    files_loaded: List[Path] = []

    repo_defaults, repo_files = _load_directory_configs(
        DEFAULT_CONFIG_DIR,
        diagnostics,
        label="repo defaults",
    )
    files_loaded.extend(repo_files)

    status: ConfigurationStatus = "ready"
    vault_overrides: Dict[str, Any] = {}

    if not resolved_vault.exists():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Vault directory '{resolved_vault}' does not exist.",
            )
        )
        status = "missing"
    elif not resolved_vault.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Vault path '{resolved_vault}' is not a directory.",
            )
        )
        status = "invalid"
    else:
        overrides_dir = resolved_vault / STATE_DIR_NAME / VAULT_CONFIG_SUBDIR
        if overrides_dir.exists():
            vault_overrides, override_files = _load_directory_configs(
                overrides_dir,
                diagnostics,
                label="vault overrides",
            )
            files_loaded.extend(override_files)

    merged = deepcopy(repo_defaults)
    _deep_merge_dicts(merged, vault_overrides)

    _validate_schema(merged, diagnostics)

    if status == "ready" and any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ConfigurationBundle(
        vault_dir=resolved_vault,
        status=status,
        merged=merged,
        repo_defaults=repo_defaults,
        vault_overrides=vault_overrides,
        files_loaded=files_loaded,
        diagnostics=diagnostics,
    )


def _load_directory_configs(
    directory: Path,
    diagnostics: List[Diagnostic],
    label: str,
) -> Tuple[Dict[str, Any], List[Path]]:
    """Load all YAML files from a directory, merging them in order."""

    data: Dict[str, Any] = {}
    loaded_files: List[Path] = []

    if not directory.exists():
        diagnostics.append(
            Diagnostic(
                level="warning",
                message=f"No configuration directory found at '{directory}' ({label}).",
                source=directory,
            )
        )
        return data, loaded_files

    if not directory.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration path '{directory}' ({label}) is not a directory.",
                source=directory,
            )
        )
        return data, loaded_files

    yaml_files = sorted(directory.glob("*.yml")) + sorted(directory.glob("*.yaml"))

    for yaml_file in yaml_files:
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"Failed to parse '{yaml_file}': {exc}",
                    source=yaml_file,
                )
            )
            continue

        if content is None:
            loaded_files.append(yaml_file)
            continue

        if not isinstance(content, MutableMapping):
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Ignoring '{yaml_file}' because it does not contain a mapping.",
                    source=yaml_file,
                )
            )
            continue

        _deep_merge_dicts(data, dict(content))
        loaded_files.append(yaml_file)

    return data, loaded_files


def _deep_merge_dicts(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge mapping values."""

    for key, value in source.items():
        if (
            key in dest
            and isinstance(dest[key], MutableMapping)
            and isinstance(value, Mapping)
        ):
            _deep_merge_dicts(dest[key], value)
        else:
            dest[key] = deepcopy(value)


def _default_from_spec(spec: SchemaSpec) -> Any:
    if "default_factory" in spec and callable(spec["default_factory"]):
        return spec["default_factory"]()
    return deepcopy(spec.get("default"))


def _validate_schema(config: Dict[str, Any], diagnostics: List[Diagnostic]) -> None:
    _validate_section(config, CONFIG_SCHEMA, "config", diagnostics)


def _type_name(expected: Any) -> str:
    if isinstance(expected, tuple):
        return ", ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_scalar(
    target: Dict[str, Any],
    key: str,
    spec: SchemaSpec,
    child_path: str,
    diagnostics: List[Diagnostic],
) -> None:
    value = target[key]
    expected_type = spec.get("type")

    # bool is an int subclass; never let `true` pass as a port number
    if expected_type and (
        not isinstance(value, expected_type)
        or (isinstance(value, bool) and expected_type is not bool)
    ):
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"'{child_path}' must be of type {_type_name(expected_type)}.",
            )
        )
        target[key] = _default_from_spec(spec)
        return

    choices = spec.get("choices")
    if choices and value not in choices:
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"'{child_path}' must be one of: {', '.join(choices)}.",
            )
        )
        target[key] = _default_from_spec(spec)
        return

    minimum, maximum = spec.get("min"), spec.get("max")
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"'{child_path}' is out of range ({value}).",
            )
        )
        target[key] = _default_from_spec(spec)


def _validate_section(
    target: Dict[str, Any],
    schema: SchemaSpec,
    path: str,
    diagnostics: List[Diagnostic],
) -> None:
    if not isinstance(target, dict):
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration section '{path}' must be a mapping.",
            )
        )
        return

    for key in list(target.keys()):
        if key not in schema:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Unknown configuration key '{path}.{key}'.",
                )
            )

    for key, spec in schema.items():
        child_path = f"{path}.{key}"
        if key not in target:
            if "default" in spec or "default_factory" in spec:
                target[key] = _default_from_spec(spec)
                if spec.get("type") is dict:
                    _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
            continue

        value = target[key]
        expected_type = spec.get("type")

        if expected_type is dict:
            if not isinstance(value, dict):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{child_path}' must be a mapping.",
                    )
                )
                target[key] = _default_from_spec(spec) or {}
                value = target[key]
            _validate_section(value, spec.get("schema", {}), child_path, diagnostics)
        elif expected_type is list:
            if not isinstance(value, list):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{child_path}' must be a list.",
                    )
                )
                target[key] = _default_from_spec(spec) or []
                continue
            item_type = spec.get("item_type")
            if item_type is not None:
                filtered: List[Any] = []
                for idx, item in enumerate(value):
                    if isinstance(item, item_type):
                        filtered.append(item)
                    else:
                        diagnostics.append(
                            Diagnostic(
                                level="error",
                                message=(
                                    f"'{child_path}[{idx}]' must be of type "
                                    f"{item_type.__name__}."
                                ),
                            )
                        )
                target[key] = filtered
        else:
            _validate_scalar(target, key, spec, child_path, diagnostics)


__all__ = [
    "ConfigurationBundle",
    "ConfigurationStatus",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_SYNC_PORT",
    "Diagnostic",
    "STATE_DIR_NAME",
    "load_runtime_configuration",
    "resolve_vault_dir",
]
