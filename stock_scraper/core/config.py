"""Runtime configuration: settings.yaml defaults overridden by the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from stock_scraper.core.errors import ConfigError
from stock_scraper.core.models import SearchStrategy

DEFAULT_SETTINGS_PATH = Path(__file__).parent.parent / "config" / "settings.yaml"


class Config:
    """Raw access to the YAML settings file."""

    _config = None
    _path: Path = DEFAULT_SETTINGS_PATH

    @classmethod
    def load(cls, path: Optional[Path | str] = None) -> Dict[str, Any]:
        if path is not None and Path(path) != cls._path:
            cls._path = Path(path)
            cls._config = None
        if cls._config is None:
            with open(cls._path, "r") as f:
                cls._config = yaml.safe_load(f) or {}
        return cls._config

    @classmethod
    def get(cls, *keys, default=None):
        cfg = cls.load()
        for key in keys:
            if not isinstance(cfg, dict):
                return default
            cfg = cfg.get(key)
        return cfg if cfg is not None else default

    @classmethod
    def reset(cls) -> None:
        cls._config = None
        cls._path = DEFAULT_SETTINGS_PATH


class JobCleanupPolicy(str, Enum):
    """When a submitted job is removed from the engine."""

    # Jobs that fail or time out after submission are left in the engine.
    SUCCESS_ONLY = "success_only"
    ALWAYS = "always"


@dataclass(frozen=True)
class ApiKeyRecord:
    team_id: str
    api_key_id: Optional[int] = None


@dataclass(frozen=True)
class Settings:
    default_search_mode: SearchStrategy = SearchStrategy.INVESTINGCOM_API
    investing_api_url: str = "https://api.investing.com/api/search/v2/search"
    investing_base_url: str = "https://www.investing.com"
    target_domain: str = "investing.com"
    web_search_limit: int = 5
    search_timeout_seconds: float = 10.0
    search_max_retries: int = 3

    engine_base_url: str = "http://firecrawl-api:3002"
    engine_api_key: Optional[str] = None
    engine_poll_interval_seconds: float = 1.0
    engine_request_timeout_seconds: float = 30.0
    base_priority: int = 10
    cleanup_policy: JobCleanupPolicy = JobCleanupPolicy.SUCCESS_ONLY

    output_dir: Path = Path("./stock-output")
    data_dir: Path = Path("./data/system")

    blocked_domains: Tuple[str, ...] = ()

    api_keys: Mapping[str, ApiKeyRecord] = field(default_factory=dict)
    zdr_teams: Tuple[str, ...] = ()
    rate_limit: str = "60/minute"
    default_timeout_ms: int = 30000

    legacy_port: int = 3003

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_keys)

    @classmethod
    def from_sources(
        cls,
        raw: Optional[Dict[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Build settings from a parsed YAML mapping plus environment overrides."""
        raw = raw if raw is not None else Config.load()
        env = env if env is not None else os.environ

        search = raw.get("search") or {}
        engine = raw.get("engine") or {}
        storage = raw.get("storage") or {}
        blocklist = raw.get("blocklist") or {}
        api = raw.get("api") or {}
        legacy = raw.get("legacy") or {}

        mode = env.get("INVESTING_COM_SEARCH_MODE") or search.get("default_mode") or SearchStrategy.INVESTINGCOM_API.value
        policy_raw = env.get("STOCK_SCRAPER_CLEANUP_POLICY") or engine.get("cleanup_policy") or JobCleanupPolicy.SUCCESS_ONLY.value
        try:
            cleanup_policy = JobCleanupPolicy(str(policy_raw).lower())
        except ValueError as exc:
            raise ConfigError(
                f"Unknown cleanup policy '{policy_raw}'",
                key="engine.cleanup_policy",
                section="engine",
            ) from exc

        api_key_entries = list(_env_list(env.get("STOCK_SCRAPER_API_KEYS"))) or list(api.get("keys") or [])
        zdr_teams = list(_env_list(env.get("STOCK_SCRAPER_ZDR_TEAMS"))) or list(api.get("zdr_teams") or [])

        return cls(
            default_search_mode=SearchStrategy.parse(mode),
            investing_api_url=search.get("investing_api_url", cls.investing_api_url),
            investing_base_url=search.get("investing_base_url", cls.investing_base_url).rstrip("/"),
            target_domain=search.get("target_domain", cls.target_domain),
            web_search_limit=_positive_int(search.get("web_search_limit", cls.web_search_limit), "search.web_search_limit"),
            search_timeout_seconds=float(search.get("timeout_seconds", cls.search_timeout_seconds)),
            search_max_retries=_positive_int(search.get("max_retries", cls.search_max_retries), "search.max_retries"),
            engine_base_url=(env.get("FIRECRAWL_API_URL") or engine.get("base_url") or cls.engine_base_url).rstrip("/"),
            engine_api_key=env.get("FIRECRAWL_API_KEY") or engine.get("api_key"),
            engine_poll_interval_seconds=float(engine.get("poll_interval_seconds", cls.engine_poll_interval_seconds)),
            engine_request_timeout_seconds=float(engine.get("request_timeout_seconds", cls.engine_request_timeout_seconds)),
            base_priority=int(engine.get("base_priority", cls.base_priority)),
            cleanup_policy=cleanup_policy,
            output_dir=Path(env.get("STOCK_SCRAPER_OUTPUT_DIR") or storage.get("output_dir") or "./stock-output"),
            data_dir=Path(env.get("STOCK_SCRAPER_DATA_DIR") or storage.get("data_dir") or "./data/system"),
            blocked_domains=tuple(_normalise_domains(blocklist.get("domains") or [])),
            api_keys=_parse_api_keys(api_key_entries),
            zdr_teams=tuple(zdr_teams),
            rate_limit=env.get("STOCK_SCRAPER_RATE_LIMIT") or api.get("rate_limit") or cls.rate_limit,
            default_timeout_ms=_positive_int(api.get("default_timeout_ms", cls.default_timeout_ms), "api.default_timeout_ms"),
            legacy_port=int(env.get("PORT") or legacy.get("port") or cls.legacy_port),
        )


def _env_list(raw: Optional[str]) -> Iterable[str]:
    if not raw:
        return []
    # Accept comma or newline separated lists
    parts = [item.strip() for item in raw.replace("\n", ",").split(",")]
    return [item for item in parts if item]


def _positive_int(value: Any, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer", key=key) from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive", key=key)
    return number


def _normalise_domains(domains: Iterable[str]) -> List[str]:
    return [domain.strip().lower().lstrip(".") for domain in domains if domain and domain.strip()]


def _parse_api_keys(entries: Iterable[str]) -> Dict[str, ApiKeyRecord]:
    """Parse `key:team[:key_id]` entries."""
    records: Dict[str, ApiKeyRecord] = {}
    for entry in entries:
        parts = [part.strip() for part in str(entry).split(":")]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ConfigError(f"Malformed API key entry '{entry}'. Expected key:team[:key_id]", key="api.keys")
        key_id: Optional[int] = None
        if len(parts) > 2 and parts[2]:
            try:
                key_id = int(parts[2])
            except ValueError as exc:
                raise ConfigError(f"API key id must be numeric in '{entry}'", key="api.keys") from exc
        records[parts[0]] = ApiKeyRecord(team_id=parts[1], api_key_id=key_id)
    return records


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings, resolved once per process."""

    load_dotenv()
    return Settings.from_sources()


__all__ = ["ApiKeyRecord", "Config", "JobCleanupPolicy", "Settings", "get_settings"]
