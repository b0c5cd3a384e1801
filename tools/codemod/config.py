#!/usr/bin/env python3
# CUI // SP-CTI
"""Codemod configuration loader.

Reads args/codemod_config.yaml, merges it over built-in defaults and
flattens the result into a CodemodSettings object that is passed
explicitly to every stage of a run. Command-line flags are applied on
top via ``apply_overrides``.

Relative paths for roots, priority files, the progress log and the
declarations output resolve against the target project directory
(default: current working directory). A relative catalog path resolves
against the project directory first, then against the tool's own tree.
"""

import copy
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from tools.codemod.errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = BASE_DIR / "args" / "codemod_config.yaml"

logger = logging.getLogger("codemod.config")

DEFAULTS: Dict[str, Any] = {
    "codemod": {
        "roots": ["src"],
        "extensions": [".ts", ".tsx", ".js", ".jsx"],
        "exclude_dirs": ["node_modules", ".next", "dist", "build", "out",
                         "coverage", "public", ".git"],
        "max_file_size": 500000,
        "catalog_path": "context/codemod/pattern_catalog.json",
        "priority_files": [],
        "max_passes": 3,
        "rewrite_ambiguous_files": False,
    },
    "type_check": {
        "enabled": False,
        "command": ["npx", "tsc", "--noEmit"],
        "error_pattern": r"error TS\d+",
        "timeout_seconds": 300,
        "cwd": ".",
    },
    "progress_log": {
        "enabled": False,
        "path": "TYPESCRIPT-ERROR-PROGRESS.md",
    },
    "declarations": {
        "output_path": "src/types/module-declarations.d.ts",
        "module_patterns": ["@chakra-ui/react/*"],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    },
}


@dataclass
class CodemodSettings:
    """Flattened, run-scoped settings. Never mutated once a run starts."""
    project_dir: str = "."
    roots: List[str] = field(default_factory=lambda: ["src"])
    extensions: List[str] = field(default_factory=lambda: [".ts", ".tsx", ".js", ".jsx"])
    exclude_dirs: List[str] = field(default_factory=list)
    max_file_size: int = 500000
    catalog_path: str = ""
    priority_files: List[str] = field(default_factory=list)
    max_passes: int = 3
    rewrite_ambiguous_files: bool = False
    dry_run: bool = False
    show_diff: bool = False
    type_check_enabled: bool = False
    type_check_command: List[str] = field(default_factory=lambda: ["npx", "tsc", "--noEmit"])
    error_pattern: str = r"error TS\d+"
    type_check_timeout: int = 300
    type_check_cwd: str = "."
    progress_log_enabled: bool = False
    progress_log_path: str = ""
    declarations_output: str = ""
    module_patterns: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_format: str = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML config merged over DEFAULTS.

    A missing file yields the defaults. A file whose top level (or any
    known section) is not a mapping raises ConfigurationError.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path:
            raise ConfigurationError(f"Config file not found: {path}", path=str(path))
        logger.debug("No config at %s, using defaults", path)
        return copy.deepcopy(DEFAULTS)

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", path=str(path)) from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}", path=str(path))
    for section in DEFAULTS:
        if section in raw and not isinstance(raw[section], dict):
            raise ConfigurationError(
                f"Config section '{section}' must be a mapping",
                path=str(path), config_key=section,
            )
    return _deep_merge(DEFAULTS, raw)


def _resolve(value: str, project_dir: Path) -> str:
    p = Path(value)
    return str(p if p.is_absolute() else (project_dir / p))


def _resolve_catalog(value: str, project_dir: Path) -> str:
    p = Path(value)
    if p.is_absolute():
        return str(p)
    local = project_dir / p
    if local.exists():
        return str(local)
    return str(BASE_DIR / p)


def settings_from_config(config: Dict[str, Any], project_dir: Optional[str] = None) -> CodemodSettings:
    """Flatten a merged config dict into CodemodSettings with resolved paths."""
    proj = Path(project_dir or ".").resolve()
    cm = config.get("codemod", {})
    tc = config.get("type_check", {})
    pl = config.get("progress_log", {})
    decl = config.get("declarations", {})
    lg = config.get("logging", {})

    command = tc.get("command", DEFAULTS["type_check"]["command"])
    if isinstance(command, str):
        command = command.split()

    try:
        max_passes = int(cm.get("max_passes", 3))
        max_file_size = int(cm.get("max_file_size", 500000))
        timeout = int(tc.get("timeout_seconds", 300))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Numeric config value is invalid: {exc}") from exc
    if max_passes < 1:
        raise ConfigurationError("codemod.max_passes must be >= 1", config_key="max_passes")

    return CodemodSettings(
        project_dir=str(proj),
        roots=[_resolve(r, proj) for r in cm.get("roots") or ["src"]],
        extensions=[e if e.startswith(".") else f".{e}" for e in cm.get("extensions", [])],
        exclude_dirs=list(cm.get("exclude_dirs", [])),
        max_file_size=max_file_size,
        catalog_path=_resolve_catalog(cm.get("catalog_path", DEFAULTS["codemod"]["catalog_path"]), proj),
        priority_files=[_resolve(p, proj) for p in cm.get("priority_files") or []],
        max_passes=max_passes,
        rewrite_ambiguous_files=bool(cm.get("rewrite_ambiguous_files", False)),
        type_check_enabled=bool(tc.get("enabled", False)),
        type_check_command=list(command),
        error_pattern=tc.get("error_pattern", r"error TS\d+"),
        type_check_timeout=timeout,
        type_check_cwd=_resolve(tc.get("cwd", "."), proj),
        progress_log_enabled=bool(pl.get("enabled", False)),
        progress_log_path=_resolve(pl.get("path", "TYPESCRIPT-ERROR-PROGRESS.md"), proj),
        declarations_output=_resolve(decl.get("output_path", DEFAULTS["declarations"]["output_path"]), proj),
        module_patterns=list(decl.get("module_patterns", [])),
        log_level=str(lg.get("level", "INFO")).upper(),
        log_format=lg.get("format", DEFAULTS["logging"]["format"]),
    )


def apply_overrides(settings: CodemodSettings, **overrides) -> CodemodSettings:
    """Return a copy of settings with non-None overrides applied.

    Path-valued overrides (roots, catalog_path, progress_log_path,
    declarations_output) are resolved against settings.project_dir.
    """
    proj = Path(settings.project_dir)
    updated = copy.deepcopy(settings)
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(updated, key):
            raise ConfigurationError(f"Unknown setting: {key}", config_key=key)
        if key == "roots":
            value = [_resolve(r, proj) for r in value]
        elif key == "extensions":
            value = [e if e.startswith(".") else f".{e}" for e in value]
        elif key == "catalog_path":
            value = _resolve_catalog(value, proj)
        elif key in ("progress_log_path", "declarations_output"):
            value = _resolve(value, proj)
        setattr(updated, key, value)
    return updated


def load_settings(config_path: Optional[str] = None, project_dir: Optional[str] = None,
                  **overrides) -> CodemodSettings:
    """Load config, flatten it and apply CLI overrides in one call."""
    settings = settings_from_config(load_config(config_path), project_dir=project_dir)
    return apply_overrides(settings, **overrides)
