"""Configuration loader for generation budgets, caches and providers."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class GenerationSettings:
    """Budgets and limits for the answer generator."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    top_p: float = 0.9
    timeout_seconds: float = 15.0
    primary_knowledge_budget: int = 80_000
    fallback_knowledge_budget: int = 8_000
    primary_max_tokens: int = 1000
    fallback_max_tokens: int = 500
    stream_max_tokens: int = 500


@dataclass
class CacheSettings:
    """TTL and capacity of the in-memory caches."""

    knowledge_ttl_seconds: float = 600.0
    knowledge_capacity: int = 100
    prompt_ttl_seconds: float = 600.0
    prompt_capacity: int = 50
    quote_ttl_seconds: float = 60.0
    quote_capacity: int = 200


@dataclass
class MarketDataSettings:
    """Market data provider settings (CoinGecko-compatible API)."""

    enabled: bool = True
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str | None = None
    timeout_seconds: float = 5.0
    calls_per_minute: int = 30


@dataclass
class ServerSettings:
    """HTTP surface settings."""

    host: str = "0.0.0.0"
    port: int = 9000
    log_level: str = "INFO"
    structured_logs: bool = False
    log_file: str | None = None
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


def _build(cls, data: dict[str, Any] | None):
    """Build a settings dataclass from a yaml section, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {unknown}")
    return cls(**{k: v for k, v in data.items() if k in known})


class ConfigLoader:
    """Loads and manages pipeline configuration."""

    def __init__(self, config_dir: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_dir: Directory containing pipeline.yaml (default: ./config)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_dir = Path(config_dir or "config")
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

        raw = self._load_yaml()
        self.generation = _build(GenerationSettings, raw.get("generation"))
        self.cache = _build(CacheSettings, raw.get("cache"))
        self.market_data = _build(MarketDataSettings, raw.get("market_data"))
        self.server = _build(ServerSettings, raw.get("server"))
        self.env = self._load_env_vars()
        self._apply_env_overrides()

    def _load_yaml(self) -> dict[str, Any]:
        """Load pipeline.yaml, falling back to defaults when it is missing."""
        config_file = self.config_dir / "pipeline.yaml"

        if not config_file.exists():
            logger.warning(f"Pipeline config not found: {config_file}, using defaults")
            return {}

        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loaded pipeline configuration from {config_file}")
        return data

    def _load_env_vars(self) -> dict[str, Any]:
        """Load environment variables."""
        return {
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "openai_base_url": os.getenv("OPENAI_BASE_URL"),
            "openai_model": os.getenv("OPENAI_MODEL"),
            "coingecko_api_key": os.getenv("COINGECKO_API_KEY"),
            "coingecko_base_url": os.getenv("COINGECKO_BASE_URL"),
            "log_level": os.getenv("LOG_LEVEL"),
            "log_file": os.getenv("LOG_FILE"),
        }

    def _apply_env_overrides(self) -> None:
        """Environment variables win over yaml values."""
        if self.env["openai_model"]:
            self.generation.model = self.env["openai_model"]
        if self.env["coingecko_api_key"]:
            self.market_data.api_key = self.env["coingecko_api_key"]
        if self.env["coingecko_base_url"]:
            self.market_data.base_url = self.env["coingecko_base_url"]
        if self.env["log_level"]:
            self.server.log_level = self.env["log_level"]
        if self.env["log_file"]:
            self.server.log_file = self.env["log_file"]

    def get_env(self, key: str, default: Any = None) -> Any:
        """Get environment variable value."""
        value = self.env.get(key)
        return default if value is None else value

    def require_env(self, key: str) -> str:
        """Get a required environment value.

        Raises:
            ValueError: If the value is not set
        """
        value = self.env.get(key)
        if not value:
            logger.error(f"Missing required environment variable: {key.upper()}")
            raise ValueError(f"Missing required environment variable: {key.upper()}")
        return value
