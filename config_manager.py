"""
Configuration management for the Feed Personalization Service.
Handles loading, validating, and providing access to service settings.
"""

import os
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field


@dataclass
class LLMConfig:
    """Text-generation provider settings."""
    primary_provider: str
    fallback_provider: str
    primary_model: str
    fallback_model: str
    api_keys: Dict[str, str]
    base_urls: Dict[str, str]
    timeout: int
    temperature: float
    max_tokens: int
    max_input_char: int

    def api_key_for(self, provider: str) -> Optional[str]:
        return self.api_keys.get(provider) or None

    def base_url_for(self, provider: str) -> Optional[str]:
        return self.base_urls.get(provider) or None


@dataclass
class AppConfig:
    """HTTP application settings."""
    host: str
    port: int
    debug: bool
    cache_invalidation_secret: str


@dataclass
class RecommendationConfig:
    """Scoring policy and embedding settings."""
    weights: Dict[str, float]
    relevance_threshold: float
    min_user_confidence: float
    preferred_category_count: int
    history_retention: int
    embedding_dim: int
    embedding_backend: str
    embedding_model: str
    max_workers: int
    max_text_chars: int
    candidate_limit: int


@dataclass
class CacheConfig:
    """Response cache and store settings."""
    summary_ttl_hours: float
    recommendation_ttl_hours: float
    backend: str
    cache_dir: str
    status_ttl_hours: float
    maintenance_interval: int


@dataclass
class ColdStartConfig:
    """Trending sets used by the trending cold-start strategy."""
    trending_categories: List[str] = field(default_factory=list)
    trending_keywords: List[str] = field(default_factory=list)


@dataclass
class ArticlesConfig:
    """Article source settings."""
    source: str
    base_url: str
    timeout: float
    seed_file: str


@dataclass
class PathsConfig:
    """Path configuration settings."""
    data_dir: str
    log_file: str


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# (environment variable, section, key, converter)
_ENV_OVERRIDES: List[tuple] = [
    ("LLM_PROVIDER", "llm", "primary_provider", str),
    ("LLM_FALLBACK_PROVIDER", "llm", "fallback_provider", str),
    ("LLM_MODEL", "llm", "primary_model", str),
    ("LLM_FALLBACK_MODEL", "llm", "fallback_model", str),
    ("LLM_TIMEOUT", "llm", "timeout", int),
    ("LLM_MAX_INPUT_CHAR", "llm", "max_input_char", int),
    ("APP_HOST", "app", "host", str),
    ("APP_PORT", "app", "port", int),
    ("APP_DEBUG", "app", "debug", _as_bool),
    ("CACHE_INVALIDATION_SECRET", "app", "cache_invalidation_secret", str),
    ("EMBEDDING_DIM", "recommendation", "embedding_dim", int),
    ("EMBEDDING_BACKEND", "recommendation", "embedding_backend", str),
    ("MAX_WORKERS", "recommendation", "max_workers", int),
    ("CACHE_BACKEND", "cache", "backend", str),
    ("STORE_BACKEND", "cache", "backend", str),
    ("ARTICLES_API_URL", "articles", "base_url", str),
    ("ARTICLE_SOURCE", "articles", "source", str),
    ("DATA_DIR", "paths", "data_dir", str),
]

# (environment variable, provider) for API keys
_API_KEY_ENV = [
    ("DEEPSEEK_API_KEY", "deepseek"),
    ("OPENAI_API_KEY", "openai"),
]


class ConfigManager:
    """Manages service configuration loading and access."""

    def __init__(self, config_file: str = "personalization_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        self._config = self._get_default_config()

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    self._merge_config(json.load(f))
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "llm": {
                "primary_provider": "deepseek",
                "fallback_provider": "openai",
                "primary_model": "deepseek-chat",
                "fallback_model": "gpt-4o-mini",
                "api_keys": {"deepseek": "", "openai": ""},
                "base_urls": {"deepseek": "", "openai": "https://api.openai.com/v1", "ollama": "http://localhost:11434"},
                "timeout": 30,
                "temperature": 0.3,
                "max_tokens": 500,
                "max_input_char": 8000
            },
            "app": {
                "host": "0.0.0.0",
                "port": 22582,
                "debug": False,
                "cache_invalidation_secret": ""
            },
            "recommendation": {
                "weights": {
                    "semantic": 0.40,
                    "category": 0.25,
                    "recency": 0.20,
                    "popularity": 0.10,
                    "diversity": 0.05
                },
                "relevance_threshold": 0.3,
                "min_user_confidence": 0.25,
                "preferred_category_count": 5,
                "history_retention": 500,
                "embedding_dim": 384,
                "embedding_backend": "hashing",
                "embedding_model": "text-embedding-3-small",
                "max_workers": 4,
                "max_text_chars": 8000,
                "candidate_limit": 200
            },
            "cache": {
                "summary_ttl_hours": 24,
                "recommendation_ttl_hours": 1,
                "backend": "memory",
                "cache_dir": "cache",
                "status_ttl_hours": 1,
                "maintenance_interval": 200
            },
            "cold_start": {
                "trending_categories": ["technology", "politics", "business", "health"],
                "trending_keywords": ["ai", "election", "climate", "economy", "markets"]
            },
            "articles": {
                "source": "memory",
                "base_url": "",
                "timeout": 10,
                "seed_file": ""
            },
            "paths": {
                "data_dir": "data",
                "log_file": ""
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config, one level deep per section."""
        for section, values in file_config.items():
            current = self._config.get(section)
            if isinstance(current, dict) and isinstance(values, dict):
                for key, value in values.items():
                    if isinstance(current.get(key), dict) and isinstance(value, dict):
                        current[key].update(value)
                    else:
                        current[key] = value
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        for env_name, section, key, convert in _ENV_OVERRIDES:
            value = os.getenv(env_name)
            if value:
                self._config[section][key] = self._convert(env_name, value, convert)

        for env_name, provider in _API_KEY_ENV:
            if os.getenv(env_name):
                self._config["llm"]["api_keys"][provider] = os.getenv(env_name)

        if os.getenv("OPENAI_API_BASE"):
            self._config["llm"]["base_urls"]["openai"] = os.getenv("OPENAI_API_BASE")

    @staticmethod
    def _convert(env_name: str, value: str, convert: Callable[[str], Any]) -> Any:
        try:
            return convert(value)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_name}: {value!r}") from e

    def get_llm_config(self) -> LLMConfig:
        """Get LLM configuration."""
        llm = self._config["llm"]
        return LLMConfig(
            primary_provider=llm["primary_provider"],
            fallback_provider=llm["fallback_provider"],
            primary_model=llm["primary_model"],
            fallback_model=llm["fallback_model"],
            api_keys=dict(llm["api_keys"]),
            base_urls=dict(llm["base_urls"]),
            timeout=int(llm["timeout"]),
            temperature=float(llm["temperature"]),
            max_tokens=int(llm["max_tokens"]),
            max_input_char=int(llm["max_input_char"])
        )

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app = self._config["app"]
        return AppConfig(
            host=app["host"],
            port=int(app["port"]),
            debug=bool(app["debug"]),
            cache_invalidation_secret=app["cache_invalidation_secret"]
        )

    def get_recommendation_config(self) -> RecommendationConfig:
        """Get scoring and embedding configuration."""
        rec = self._config["recommendation"]
        return RecommendationConfig(
            weights=dict(rec["weights"]),
            relevance_threshold=float(rec["relevance_threshold"]),
            min_user_confidence=float(rec["min_user_confidence"]),
            preferred_category_count=int(rec["preferred_category_count"]),
            history_retention=int(rec["history_retention"]),
            embedding_dim=int(rec["embedding_dim"]),
            embedding_backend=rec["embedding_backend"],
            embedding_model=rec["embedding_model"],
            max_workers=int(rec["max_workers"]),
            max_text_chars=int(rec["max_text_chars"]),
            candidate_limit=int(rec["candidate_limit"])
        )

    def get_cache_config(self) -> CacheConfig:
        """Get cache configuration."""
        cache = self._config["cache"]
        return CacheConfig(
            summary_ttl_hours=float(cache["summary_ttl_hours"]),
            recommendation_ttl_hours=float(cache["recommendation_ttl_hours"]),
            backend=cache["backend"],
            cache_dir=cache["cache_dir"],
            status_ttl_hours=float(cache["status_ttl_hours"]),
            maintenance_interval=int(cache["maintenance_interval"])
        )

    def get_cold_start_config(self) -> ColdStartConfig:
        """Get cold-start configuration."""
        cold = self._config["cold_start"]
        return ColdStartConfig(
            trending_categories=list(cold["trending_categories"]),
            trending_keywords=list(cold["trending_keywords"])
        )

    def get_articles_config(self) -> ArticlesConfig:
        """Get article source configuration."""
        articles = self._config["articles"]
        return ArticlesConfig(
            source=articles["source"],
            base_url=articles["base_url"],
            timeout=float(articles["timeout"]),
            seed_file=articles["seed_file"]
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        paths = self._config["paths"]
        return PathsConfig(
            data_dir=paths["data_dir"],
            log_file=paths["log_file"]
        )

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return json.loads(json.dumps(self._config))

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


# Global configuration instance
config_manager = ConfigManager()


def get_llm_config() -> LLMConfig:
    """Get LLM configuration."""
    return config_manager.get_llm_config()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_recommendation_config() -> RecommendationConfig:
    """Get recommendation configuration."""
    return config_manager.get_recommendation_config()


def get_cache_config() -> CacheConfig:
    """Get cache configuration."""
    return config_manager.get_cache_config()


def get_cold_start_config() -> ColdStartConfig:
    """Get cold-start configuration."""
    return config_manager.get_cold_start_config()


def get_articles_config() -> ArticlesConfig:
    """Get article source configuration."""
    return config_manager.get_articles_config()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()


def save_config() -> None:
    """Save configuration to file."""
    config_manager.save_config()
