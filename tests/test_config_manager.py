"""
Test cases for the configuration management system.
Tests config loading, environment overrides, and typed section access.
"""

import os
import json
from unittest.mock import patch, mock_open
import pytest

from config_manager import (
    ConfigManager,
    LLMConfig,
    AppConfig,
    RecommendationConfig,
    CacheConfig,
    ColdStartConfig,
    ArticlesConfig,
    PathsConfig,
)


def _manager(tmp_path, file_config=None, env=None):
    """Build a manager from an optional JSON file under a controlled environment."""
    config_file = tmp_path / "personalization_config.json"
    if file_config is not None:
        config_file.write_text(json.dumps(file_config), encoding="utf-8")
    with patch.dict(os.environ, env or {}, clear=True):
        return ConfigManager(str(config_file))


class TestConfigManager:
    """Test the ConfigManager class functionality."""

    def test_defaults_without_file(self, tmp_path):
        """Test that a missing config file yields the built-in defaults."""
        manager = _manager(tmp_path)

        rec = manager.get_recommendation_config()
        assert rec.weights == {
            "semantic": 0.40,
            "category": 0.25,
            "recency": 0.20,
            "popularity": 0.10,
            "diversity": 0.05,
        }
        assert rec.relevance_threshold == 0.3
        assert rec.embedding_dim == 384
        assert manager.get_cache_config().summary_ttl_hours == 24
        assert manager.get_cache_config().recommendation_ttl_hours == 1
        assert manager.get_cache_config().status_ttl_hours == 1
        assert manager.get_cache_config().maintenance_interval == 200
        assert manager.get_app_config().cache_invalidation_secret == ""

    def test_load_config_from_file(self, tmp_path):
        """Test that file values are merged over the defaults section by section."""
        manager = _manager(tmp_path, {
            "llm": {"primary_provider": "openai", "primary_model": "gpt-4o"},
            "recommendation": {"weights": {"semantic": 0.5}},
            "cache": {"backend": "json"},
        })

        llm = manager.get_llm_config()
        assert llm.primary_provider == "openai"
        assert llm.primary_model == "gpt-4o"
        # untouched keys keep their defaults
        assert llm.fallback_provider == "openai"
        weights = manager.get_recommendation_config().weights
        assert weights["semantic"] == 0.5
        assert weights["category"] == 0.25
        assert manager.get_cache_config().backend == "json"

    def test_invalid_json_keeps_defaults(self, tmp_path):
        config_file = tmp_path / "broken.json"
        config_file.write_text("{not valid", encoding="utf-8")
        with patch.dict(os.environ, {}, clear=True):
            manager = ConfigManager(str(config_file))
        assert manager.get_app_config().port == 22582

    def test_load_with_mocked_open(self):
        """Test loading through a mocked file handle, as a deployment would read it."""
        test_config = {"app": {"host": "127.0.0.1", "port": 9000}}
        with patch('builtins.open', mock_open(read_data=json.dumps(test_config))):
            with patch('config_manager.Path') as mock_path:
                mock_path.return_value.exists.return_value = True
                with patch.dict(os.environ, {}, clear=True):
                    manager = ConfigManager()
        assert manager.get_app_config().host == "127.0.0.1"
        assert manager.get_app_config().port == 9000

    def test_override_with_env_variables(self, tmp_path):
        """Test that environment variables override config file values."""
        manager = _manager(
            tmp_path,
            {"app": {"port": 8000}},
            {
                "APP_PORT": "9100",
                "APP_DEBUG": "true",
                "LLM_PROVIDER": "ollama",
                "LLM_MODEL": "qwen3:8b",
                "DEEPSEEK_API_KEY": "ds-key",
                "OPENAI_API_KEY": "oa-key",
                "OPENAI_API_BASE": "http://proxy.local/v1",
                "CACHE_INVALIDATION_SECRET": "shh",
                "STORE_BACKEND": "json",
                "EMBEDDING_DIM": "128",
                "ARTICLE_SOURCE": "http",
                "ARTICLES_API_URL": "http://news.local/api",
                "DATA_DIR": "/tmp/feed",
            },
        )

        app = manager.get_app_config()
        assert app.port == 9100
        assert app.debug is True
        assert app.cache_invalidation_secret == "shh"

        llm = manager.get_llm_config()
        assert llm.primary_provider == "ollama"
        assert llm.primary_model == "qwen3:8b"
        assert llm.api_key_for("deepseek") == "ds-key"
        assert llm.api_key_for("openai") == "oa-key"
        assert llm.base_url_for("openai") == "http://proxy.local/v1"

        assert manager.get_cache_config().backend == "json"
        assert manager.get_recommendation_config().embedding_dim == 128
        articles = manager.get_articles_config()
        assert articles.source == "http"
        assert articles.base_url == "http://news.local/api"
        assert manager.get_paths_config().data_dir == "/tmp/feed"

    def test_invalid_env_value(self, tmp_path):
        with pytest.raises(ValueError, match="APP_PORT"):
            _manager(tmp_path, env={"APP_PORT": "not-a-port"})

    def test_missing_api_key_is_none(self, tmp_path):
        assert _manager(tmp_path).get_llm_config().api_key_for("deepseek") is None

    def test_save_and_reload(self, tmp_path):
        """Test that saved configuration is read back by a new manager."""
        manager = _manager(tmp_path)
        manager._config["cold_start"]["trending_categories"] = ["science"]
        manager.save_config()

        reloaded = _manager(tmp_path)
        assert reloaded.get_cold_start_config().trending_categories == ["science"]

    def test_get_config_returns_copy(self, tmp_path):
        manager = _manager(tmp_path)
        raw = manager.get_config()
        raw["app"]["port"] = 1
        assert manager.get_app_config().port == 22582


class TestConfigDataClasses:
    """Test the typed section objects."""

    def test_section_types(self, tmp_path):
        manager = _manager(tmp_path)
        assert isinstance(manager.get_llm_config(), LLMConfig)
        assert isinstance(manager.get_app_config(), AppConfig)
        assert isinstance(manager.get_recommendation_config(), RecommendationConfig)
        assert isinstance(manager.get_cache_config(), CacheConfig)
        assert isinstance(manager.get_cold_start_config(), ColdStartConfig)
        assert isinstance(manager.get_articles_config(), ArticlesConfig)
        assert isinstance(manager.get_paths_config(), PathsConfig)

    def test_llm_config_lookups(self):
        llm = LLMConfig(
            primary_provider="deepseek",
            fallback_provider="openai",
            primary_model="deepseek-chat",
            fallback_model="gpt-4o-mini",
            api_keys={"deepseek": "", "openai": "k"},
            base_urls={"openai": "https://api.openai.com/v1"},
            timeout=30,
            temperature=0.3,
            max_tokens=500,
            max_input_char=8000,
        )
        assert llm.api_key_for("deepseek") is None
        assert llm.api_key_for("openai") == "k"
        assert llm.base_url_for("ollama") is None
