from __future__ import annotations

# raiderpal/config.py
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import yaml

from .constants import CACHE
from .errors import ConfigurationError

# Resolution order for every key:
# 1) process environment (first matching alias wins)
# 2) config.yaml at the project root
# 3) built-in defaults below
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_CONFIG_YAML = os.path.join(_PROJECT_ROOT, "config.yaml")

ENV_ALIASES = {
    "data_url": ("RP_DATA_URL", "SUPABASE_URL", "SUPABASEURL"),
    "data_key": ("RP_DATA_KEY", "SUPABASE_ANON_KEY", "SUPABASEANONKEY"),
    "db_path": ("RP_DB_PATH",),
    "revalidate_token": ("RP_REVALIDATE_TOKEN", "REVALIDATE_TOKEN"),
    "cache_backend": ("RP_CACHE_BACKEND",),
    "request_timeout": ("RP_REQUEST_TIMEOUT",),
    "cache_max_entries": ("RP_CACHE_MAX_ENTRIES",),
}

DEFAULT_CACHE_TTLS = {
    "items": "LONG",
    "item_detail": "MODAL",
    "repair_economy": "DEFAULT",
    "recycling": "DEFAULT",
}

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

CACHE_BACKENDS = ("memory", "sqlite")


def read_config_yaml(path: str | None = None) -> dict:
    cfg_path = path or _CONFIG_YAML
    if not os.path.exists(cfg_path):
        return {}
    with open(cfg_path, "r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"config.yaml is not valid YAML: {e}")
    if not isinstance(cfg, dict):
        raise ConfigurationError("config.yaml must contain a mapping")
    return cfg


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API server.

    Notes
    - data_url selects the row store: ``sqlite:///path/to.db`` for the local
      SQLite store, ``https://...`` for a hosted PostgREST endpoint.
    - data_key is the hosted endpoint's access key; unused for SQLite.
    - db_path is the local state file (operation log, persistent cache).
    """

    data_url: str
    data_key: Optional[str] = None
    db_path: Optional[str] = None
    revalidate_token: Optional[str] = None
    cache_backend: str = "memory"
    cache_ttls: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CACHE_TTLS))
    cors_allow_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    request_timeout: float = 10.0
    cache_max_entries: int = CACHE["MAX_ENTRIES"]

    @property
    def is_hosted(self) -> bool:
        return self.data_url.startswith(("http://", "https://"))

    @property
    def sqlite_path(self) -> str:
        if not self.data_url.startswith("sqlite:///"):
            raise ConfigurationError(f"not a sqlite data_url: {self.data_url}")
        return self.data_url[len("sqlite:///"):]

    def ttl_class_for(self, family: str) -> str:
        return self.cache_ttls.get(family, "DEFAULT")


def _from_env(name: str, env: Mapping[str, str]) -> Optional[str]:
    for alias in ENV_ALIASES.get(name, ()):
        v = env.get(alias)
        if v is not None and v.strip():
            return v.strip()
    return None


def _pick(name: str, env: Mapping[str, str], cfg: dict) -> Optional[str]:
    v = _from_env(name, env)
    if v is not None:
        return v
    v = cfg.get(name)
    if isinstance(v, str) and v.strip():
        return v.strip()
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return None


def load_settings(env: Mapping[str, str] | None = None, config_path: str | None = None) -> Settings:
    """Build Settings from env + config.yaml; raise ConfigurationError when required keys are missing."""
    env = os.environ if env is None else env
    cfg = read_config_yaml(config_path)

    data_url = _pick("data_url", env, cfg)
    if not data_url:
        raise ConfigurationError("Data source is not configured: set RP_DATA_URL (or SUPABASE_URL)")
    if not data_url.startswith(("sqlite:///", "http://", "https://")):
        raise ConfigurationError(f"Unsupported data_url scheme: {data_url}")

    data_key = _pick("data_key", env, cfg)
    if data_url.startswith(("http://", "https://")) and not data_key:
        raise ConfigurationError("Hosted data source needs an access key: set RP_DATA_KEY (or SUPABASE_ANON_KEY)")

    cache_backend = (_pick("cache_backend", env, cfg) or "memory").lower()
    if cache_backend not in CACHE_BACKENDS:
        raise ConfigurationError(f"cache_backend must be one of {CACHE_BACKENDS}, got {cache_backend!r}")

    ttls = dict(DEFAULT_CACHE_TTLS)
    raw_ttls = cfg.get("cache_ttls") or {}
    if not isinstance(raw_ttls, dict):
        raise ConfigurationError("cache_ttls must be a mapping of key family to TTL class")
    for family, cls in raw_ttls.items():
        cls = str(cls).upper()
        if cls not in ("DEFAULT", "LONG", "VERSION", "MODAL"):
            raise ConfigurationError(f"Unknown TTL class {cls!r} for cache key family {family!r}")
        ttls[str(family)] = cls

    origins = cfg.get("cors_allow_origins") or list(DEFAULT_CORS_ORIGINS)
    if isinstance(origins, str):
        origins = [o.strip() for o in origins.split(",") if o.strip()]

    timeout_raw = _pick("request_timeout", env, cfg)
    try:
        timeout = float(timeout_raw) if timeout_raw else 10.0
    except ValueError:
        raise ConfigurationError(f"request_timeout must be a number, got {timeout_raw!r}")

    max_raw = _pick("cache_max_entries", env, cfg)
    try:
        max_entries = int(max_raw) if max_raw not in (None, "") else CACHE["MAX_ENTRIES"]
    except (TypeError, ValueError):
        raise ConfigurationError(f"cache_max_entries must be an integer, got {max_raw!r}")
    if max_entries < 0:
        raise ConfigurationError("cache_max_entries must be >= 0 (0 disables the cap)")

    return Settings(
        data_url=data_url,
        data_key=data_key,
        db_path=_pick("db_path", env, cfg),
        revalidate_token=_pick("revalidate_token", env, cfg),
        cache_backend=cache_backend,
        cache_ttls=ttls,
        cors_allow_origins=list(origins),
        request_timeout=timeout,
        cache_max_entries=max_entries,
    )
