from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from fontl.catalog import DUPLICATE_POLICIES
from fontl.errors import ValidationError

DEFAULT_CONFIG_PATH = "config/fontl.yaml"

# env var -> ServerConfig field
ENV_VARS = {
    "FONTL_DIR": "font_dir",
    "FONTL_HOST": "host",
    "FONTL_PORT": "port",
    "FONTL_ON_DUPLICATE": "on_duplicate",
    "LOG_LEVEL": "log_level",
}


@dataclass(frozen=True)
class ServerConfig:
    font_dir: str = "."
    host: str = "0.0.0.0"
    port: int = 8080
    on_duplicate: str = "error"
    log_level: str = "INFO"
    shutdown_grace_s: float = 5.0

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "port", int(self.port))
            object.__setattr__(self, "shutdown_grace_s", float(self.shutdown_grace_s))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"invalid numeric config value: {e}") from e
        if not 0 < self.port < 65536:
            raise ValidationError(f"port out of range: {self.port}")
        if self.on_duplicate not in DUPLICATE_POLICIES:
            raise ValidationError(f"on_duplicate must be one of {DUPLICATE_POLICIES}, got {self.on_duplicate!r}")
        object.__setattr__(self, "log_level", str(self.log_level).upper())


def _from_yaml(path: str) -> Dict[str, Any]:
    """
    Flatten the YAML layout into ServerConfig fields:

        server:  {host, port, shutdown_grace_s}
        catalog: {font_dir, on_duplicate}
        logging: {level}
    """
    if not Path(path).exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    if not isinstance(doc, dict):
        raise ValidationError(f"config file must be a mapping: {path}")

    out: Dict[str, Any] = {}
    server = doc.get("server", {}) or {}
    catalog = doc.get("catalog", {}) or {}
    logging_cfg = doc.get("logging", {}) or {}
    for section in (server, catalog, logging_cfg):
        if not isinstance(section, dict):
            raise ValidationError(f"config sections must be mappings: {path}")
    for key in ("host", "port", "shutdown_grace_s"):
        if key in server:
            out[key] = server[key]
    for key in ("font_dir", "on_duplicate"):
        if key in catalog:
            out[key] = catalog[key]
    if "level" in logging_cfg:
        out["log_level"] = logging_cfg["level"]
    return out


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    return {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var)}


def load_config(
    path: str = DEFAULT_CONFIG_PATH,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServerConfig:
    """
    Defaults < YAML file (if present) < environment < explicit overrides (CLI flags).
    `None` override values are ignored so unset flags don't mask lower layers.
    """
    known = {f.name for f in fields(ServerConfig)}
    values: Dict[str, Any] = {}
    values.update(_from_yaml(path))
    values.update(_from_env(os.environ if environ is None else environ))
    for k, v in (overrides or {}).items():
        if v is None:
            continue
        if k not in known:
            raise ValidationError(f"unknown config key: {k}")
        values[k] = v
    return replace(ServerConfig(), **values)
