"""
Engine settings.

Read from environment variables, optionally overlaid by a YAML or JSON file
named by CENGINE_SETTINGS_FILE. Keys in the file are the lower-case setting
names without the prefix, e.g.:

    integrity_mode: warn
    models_dir: /opt/hop-models
    arena_pages: 512

Invalid values are logged and replaced with the defaults.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from contract_engine.core.integrity.verification import MODE_ENFORCE, MODE_WARN

_log = logging.getLogger("cengine.config")

ENV_PREFIX = "CENGINE_"


def _default_models_dir() -> str:
    return str(Path.home() / "hop-models")


@dataclass(frozen=True)
class EngineSettings:
    env: str = "dev"
    integrity_mode: str = MODE_ENFORCE
    models_dir: str = field(default_factory=_default_models_dir)
    http_timeout_seconds: float = 20.0
    arena_pages: int = 256
    arena_max_pages: int = 512
    script_python: str = field(default_factory=lambda: sys.executable)
    host: str = "0.0.0.0"
    port: int = 8001


_CASTS = {
    "http_timeout_seconds": float,
    "arena_pages": int,
    "arena_max_pages": int,
    "port": int,
}


def _coerce(name: str, raw: Any, default: Any) -> Any:
    cast = _CASTS.get(name, str)
    try:
        value = cast(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError) as exc:
        _log.warning("Ignoring invalid setting %s=%r: %s", name, raw, exc)
        return default

    if name == "integrity_mode":
        value = str(value).lower()
        if value not in (MODE_ENFORCE, MODE_WARN):
            _log.warning("Ignoring invalid setting integrity_mode=%r (expected enforce|warn)", raw)
            return default
    if name in ("arena_pages", "arena_max_pages") and value <= 0:
        _log.warning("Ignoring non-positive setting %s=%r", name, raw)
        return default
    return value


def _read_settings_file(path: Path) -> Dict[str, Any]:
    """JSON first, then YAML. Returns {} if absent or malformed."""
    if not path.exists():
        _log.warning("Settings file %s does not exist", path)
        return {}
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        _log.warning("Cannot read settings file %s: %s", path, exc)
        return {}

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            _log.warning("Failed to parse settings file %s as JSON or YAML: %s", path, exc)
            return {}

    if not isinstance(data, dict):
        _log.warning("Settings file %s must be a mapping, got %s", path, type(data).__name__)
        return {}
    return data


def load_settings(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> EngineSettings:
    env = os.environ if environ is None else environ
    defaults = EngineSettings()
    values: Dict[str, Any] = {}

    file_path = path
    if file_path is None and (env.get(ENV_PREFIX + "SETTINGS_FILE") or "").strip():
        file_path = Path(env[ENV_PREFIX + "SETTINGS_FILE"].strip())
    if file_path is not None:
        for k, v in _read_settings_file(Path(file_path)).items():
            values[str(k).lower()] = v

    # env wins over file
    for f in fields(EngineSettings):
        raw = env.get(ENV_PREFIX + f.name.upper())
        if raw is not None and str(raw).strip():
            values[f.name] = raw

    known = {f.name for f in fields(EngineSettings)}
    updates: Dict[str, Any] = {}
    for name, raw in values.items():
        if name not in known:
            _log.warning("Unknown setting %r ignored", name)
            continue
        updates[name] = _coerce(name, raw, getattr(defaults, name))

    settings = replace(defaults, **updates)
    if settings.arena_max_pages < settings.arena_pages:
        _log.warning(
            "arena_max_pages=%s is below arena_pages=%s; using arena_pages",
            settings.arena_max_pages,
            settings.arena_pages,
        )
        settings = replace(settings, arena_max_pages=settings.arena_pages)
    return settings
