# pr_platform/config_base.py
# configuration management base.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pr_platform.url_validation import validate_server_url

TRAKT_API = "https://api.trakt.tv"


def CONFIG_BASE() -> Path:
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        # In container image mount /config as a writable volume
        return Path("/config")
    return Path(__file__).resolve().parents[1]


# Default config
DEFAULT_CFG: dict[str, Any] = {
    "trakt": {
        "client_id": "",                                # From your Trakt app
        "client_secret": "",                            # From your Trakt app
        "redirect_uri": "",                             # Empty = <server.base_url>/callback
        "api_url": TRAKT_API,                           # Trakt API root
        "timeout": 15,                                  # HTTP timeout (seconds) for every outbound call
    },

    "plex": {
        "owner_only": False,                            # Only the server owner may scrobble (exclusive rule)
        "allowed_users": [],                            # Plex account titles allowed to scrobble
        "allowed_user_ids": [],                         # Plex account ids allowed to scrobble
        "allowed_user": "",                             # Single Plex account title allowed to scrobble
    },

    "server": {
        "host": "0.0.0.0",                              # Bind address
        "port": 3000,                                   # Listen port
        "webhook_path": "/webhook",                     # Path Plex posts to
        "base_url": "",                                 # Empty = http://localhost:<port>
        "token_file": "trakt_tokens.json",              # Relative to CONFIG_BASE
    },

    "runtime": {
        "debug": False,                                 # Verbose logging
        "debug_http": False,                            # uvicorn access log
    },
}

# Environment overrides: env name -> (section, key, kind)
_ENV_MAP: tuple[tuple[str, str, str, str], ...] = (
    ("TRAKT_CLIENT_ID", "trakt", "client_id", "str"),
    ("TRAKT_CLIENT_SECRET", "trakt", "client_secret", "str"),
    ("TRAKT_REDIRECT_URI", "trakt", "redirect_uri", "str"),
    ("PLEX_OWNER_ONLY", "plex", "owner_only", "bool"),
    ("PLEX_ALLOWED_USERS", "plex", "allowed_users", "list"),
    ("PLEX_ALLOWED_USER_IDS", "plex", "allowed_user_ids", "list"),
    ("PLEX_ALLOWED_USER", "plex", "allowed_user", "str"),
    ("PORT", "server", "port", "int"),
    ("WEBHOOK_PORT", "server", "port", "int"),
    ("WEBHOOK_PATH", "server", "webhook_path", "str"),
    ("WEBHOOK_BASE_URL", "server", "base_url", "str"),
)

_REQUIRED: tuple[tuple[str, str, str], ...] = (
    ("trakt", "client_id", "TRAKT_CLIENT_ID"),
    ("trakt", "client_secret", "TRAKT_CLIENT_SECRET"),
)

_REDACT = "••••••••"

_SECRET_PATHS: tuple[tuple[str, ...], ...] = (
    ("trakt", "client_secret"),
)


def _redact_path(d: dict[str, Any], path: tuple[str, ...]) -> None:
    """Walk *path* inside *d* and replace the leaf with _REDACT if truthy."""
    node: Any = d
    for key in path[:-1]:
        if not isinstance(node, dict):
            return
        node = node.get(key)
    if isinstance(node, dict):
        leaf = path[-1]
        if node.get(leaf):
            node[leaf] = _REDACT


def redact_config(cfg: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = copy.deepcopy(cfg or {})
    for path in _SECRET_PATHS:
        _redact_path(out, path)
    return out


# Helpers: paths, IO, merging, normalization
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"


def token_path(cfg: dict[str, Any]) -> Path:
    name = str(((cfg.get("server") or {}).get("token_file")) or "trakt_tokens.json")
    p = Path(name)
    return p if p.is_absolute() else CONFIG_BASE() / p


def _read_json(p: Path) -> dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(p: Path, data: dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    try:
        with tmp.open("w", encoding="utf-8", newline="\n") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(p)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(s).strip() for s in value if str(s).strip()]
    return [str(value).strip()] if str(value).strip() else []


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def _apply_env(cfg: dict[str, Any], environ: dict[str, str] | None = None) -> None:
    env = os.environ if environ is None else environ
    for name, section, key, kind in _ENV_MAP:
        raw = env.get(name)
        if raw is None or not str(raw).strip():
            continue
        raw = str(raw).strip()
        sec = cfg.setdefault(section, {})
        if kind == "bool":
            sec[key] = _as_bool(raw)
        elif kind == "list":
            sec[key] = _as_list(raw)
        elif kind == "int":
            try:
                sec[key] = int(raw)
            except ValueError:
                continue
        else:
            sec[key] = raw


def _normalize(cfg: dict[str, Any]) -> None:
    plex = cfg.setdefault("plex", {})
    plex["owner_only"] = _as_bool(plex.get("owner_only"))
    plex["allowed_users"] = _as_list(plex.get("allowed_users"))
    plex["allowed_user_ids"] = _as_list(plex.get("allowed_user_ids"))
    plex["allowed_user"] = str(plex.get("allowed_user") or "").strip()

    srv = cfg.setdefault("server", {})
    try:
        srv["port"] = int(srv.get("port") or 3000)
    except (TypeError, ValueError):
        srv["port"] = 3000
    path = str(srv.get("webhook_path") or "/webhook").strip()
    srv["webhook_path"] = path if path.startswith("/") else f"/{path}"

    trk = cfg.setdefault("trakt", {})
    trk["api_url"] = str(trk.get("api_url") or TRAKT_API).strip().rstrip("/")
    try:
        trk["timeout"] = float(trk.get("timeout") or 15)
    except (TypeError, ValueError):
        trk["timeout"] = 15.0


def base_url(cfg: dict[str, Any]) -> str:
    srv = cfg.get("server") or {}
    raw = str(srv.get("base_url") or "").strip().rstrip("/")
    return raw or f"http://localhost:{srv.get('port') or 3000}"


def redirect_uri(cfg: dict[str, Any]) -> str:
    raw = str(((cfg.get("trakt") or {}).get("redirect_uri")) or "").strip()
    return raw or f"{base_url(cfg)}/callback"


def webhook_url(cfg: dict[str, Any]) -> str:
    return f"{base_url(cfg)}{(cfg.get('server') or {}).get('webhook_path') or '/webhook'}"


def validate_config(cfg: dict[str, Any]) -> list[str]:
    """Return human readable problems; an empty list means the config is usable."""
    problems: list[str] = []
    for section, key, env in _REQUIRED:
        if not str(((cfg.get(section) or {}).get(key)) or "").strip():
            problems.append(f"missing {section}.{key} (env {env})")
    problems.extend(validate_server_url(base_url(cfg), "server.base_url"))
    problems.extend(validate_server_url(redirect_uri(cfg), "trakt.redirect_uri"))
    return problems


# Public API
def load_config(*, use_env: bool = True) -> dict[str, Any]:
    p = _cfg_file()
    user_cfg: dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg if isinstance(user_cfg, dict) else {})
    if use_env:
        load_dotenv(CONFIG_BASE() / ".env", override=False)
        _apply_env(cfg)
    _normalize(cfg)
    return cfg

