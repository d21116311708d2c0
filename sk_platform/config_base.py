# sk_platform/config_base.py
# Synkuru - process configuration
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import copy
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config.json and the id database.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    "anilist": {
        "endpoint": "https://graphql.anilist.co",      # GraphQL query/mutation endpoint
        "timeout": 15.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Automatic retries after a 429
    },

    "limiter": {
        "max_concurrent": 5,                            # Requests in flight at once
        "reservoir": 30,                                # Tokens available at start
        "refresh_amount": 30,                           # Reservoir value after each refill
        "refresh_interval": 60.0,                       # Seconds between refills
        "min_time": 0.2,                                # Minimum spacing between dispatches (seconds)
        "default_retry_after": 60.0,                    # Pause used when a 429 carries no Retry-After
    },

    "cache": {
        "query_max": 500,                               # GraphQL query results
        "query_ttl": 600,                               # 10 minutes
        "anilist_id_max": 10000,                        # scheme:id -> anilist id
        "anilist_id_ttl": 86400,                        # 1 day
        "external_id_max": 5000,                        # anilist id -> tvdb/tmdb
        "external_id_ttl": 604800,                      # 1 week, these rarely change
        "logo_max": 500,                                # anilist id -> logo url
        "logo_ttl": 3600,                               # 1 hour
    },

    "lookups": {
        "timeout": 5.0,                                 # Auxiliary services are expected to answer fast
        "kitsu_url": "https://kitsu.io/api/edge",
        "arm_url": "https://arm.haglund.dev",
        "cinemeta_url": "https://v3-cinemeta.strem.io",
        "fanart_url": "https://webservice.fanart.tv/v3",
    },

    "fanart": {"api_key": ""},                          # Without a key logos are skipped

    "database": {"path": ""},                           # Empty = <CONFIG_BASE>/db/id-cache.db

    "runtime": {
        "debug": False,
        "host": "0.0.0.0",
        "port": 7000,
    },
}

_ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "FANART_API_KEY": ("fanart", "api_key"),
    "SK_DB_PATH": ("database", "path"),
    "SK_HOST": ("runtime", "host"),
    "SK_PORT": ("runtime", "port"),
    "SK_ANILIST_ENDPOINT": ("anilist", "endpoint"),
}


def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"


def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(f".{time.time_ns()}.{os.getpid()}.{secrets.token_hex(4)}.tmp")
    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env, (section, key) in _ENV_OVERRIDES.items():
        raw = os.getenv(env)
        if raw is None or not raw.strip():
            continue
        block = cfg.setdefault(section, {})
        current = DEFAULT_CFG.get(section, {}).get(key)
        if isinstance(current, int) and not isinstance(current, bool):
            try:
                block[key] = int(raw)
            except ValueError:
                continue
        else:
            block[key] = raw.strip()
    return cfg


def database_path(cfg: Dict[str, Any]) -> Path:
    raw = str((cfg.get("database") or {}).get("path") or "").strip()
    if raw:
        return Path(raw)
    return CONFIG_BASE() / "db" / "id-cache.db"


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json over the defaults, then apply environment overrides.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}
    return _apply_env(_deep_merge(DEFAULT_CFG, user_cfg))


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(_cfg_file(), dict(cfg or {}))
