"""Simplified comprehensive tests for Config class."""

import logging
import os
from importlib import reload
from pathlib import Path
from unittest.mock import call, patch

import pytest

from advisor import config as config_module
from advisor.config import Config


def test_get_openai_api_key_from_env():
    """Test OpenAI API key retrieval from environment."""
    with patch.dict(os.environ, {"OPENAI_API_KEY": "test-api-key"}):
        assert Config.get_openai_api_key() == "test-api-key"


def test_get_openai_api_key_empty_when_not_set():
    """Test OpenAI API key returns empty string when not set."""
    with patch.dict(os.environ, {}, clear=True):
        assert not Config.get_openai_api_key()


def test_validate_success_with_api_key():
    """Test validation passes when API key is set."""
    with patch.object(Config, "get_openai_api_key", return_value="test-key"):
        Config.validate()


def test_validate_fails_without_api_key():
    """Test validation fails when API key is not set."""
    with (
        patch.object(Config, "get_openai_api_key", return_value=""),
        pytest.raises(ValueError, match="OPENAI_API_KEY is required"),
    ):
        Config.validate()


def test_validate_fails_for_unknown_backend():
    with (
        patch.object(Config, "get_openai_api_key", return_value="test-key"),
        patch.object(Config, "VECTOR_BACKEND", "chroma"),
        pytest.raises(ValueError, match="Unsupported VECTOR_BACKEND"),
    ):
        Config.validate()


@pytest.mark.parametrize(
    ("env_var", "default_value", "test_value", "expected"),
    [
        ("LOG_LEVEL", "INFO", "debug", "DEBUG"),
        ("OPENAI_LOG_LEVEL", "WARNING", "error", "ERROR"),
        ("ENVIRONMENT", "development", "production", "production"),
        (
            "EMBEDDING_MODEL",
            "text-embedding-3-small",
            "text-embedding-3-large",
            "text-embedding-3-large",
        ),
        ("VECTOR_BACKEND", "faiss", "SQLite", "sqlite"),
        ("BIAS_LOG_TAIL", 100, "25", 25),
        ("SESSION_TTL_SECONDS", 21600, "60", 60),
        ("MAX_SESSIONS", 10000, "3", 3),
        ("READY_POLL_INTERVAL", 0.5, "0.1", 0.1),
        ("READY_MAX_POLLS", 10, "4", 4),
    ],
)
def test_config_loading_from_env(env_var, default_value, test_value, expected):
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        assert getattr(config_module.Config, env_var) == default_value

    with patch.dict(os.environ, {env_var: test_value}):
        reload(config_module)
        assert getattr(config_module.Config, env_var) == expected


@pytest.mark.parametrize(
    ("env_var", "test_path"),
    [
        ("VECTOR_STORE_DB_PATH", "/custom/path/store.db"),
        ("VECTOR_STORE_DIR", "/custom/vectors"),
        ("FAISS_INDEX_PATH", "/custom/faiss/index.faiss"),
        ("DOCUMENTS_DIR", "/srv/documents"),
        ("ANALYTICS_DB_PATH", "/srv/advisor.db"),
        ("BIAS_LOG_PATH", "/var/log/advisor/bias.log"),
        ("ERROR_LOG_PATH", "/var/log/advisor/error.log"),
    ],
)
def test_path_config_loading(env_var, test_path):
    """Test Path configuration loading from environment variables."""
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        default_path = getattr(config_module.Config, env_var)
        assert isinstance(default_path, Path)

    with patch.dict(os.environ, {env_var: test_path}):
        reload(config_module)
        assert getattr(config_module.Config, env_var) == Path(test_path)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("LA County,Pasadena County", ("LA County", "Pasadena County")),
        (" LA County , ,Ventura County ", ("LA County", "Ventura County")),
    ],
)
def test_jurisdictions_from_env(raw, expected):
    with patch.dict(os.environ, {"JURISDICTIONS": raw}):
        reload(config_module)
        assert config_module.Config.JURISDICTIONS == expected


def test_openai_base_url_from_env():
    """Test OpenAI base URL loading from environment."""
    with patch.dict(os.environ, {"OPENAI_BASE_URL": "https://custom.openai.com"}):
        reload(config_module)
        assert config_module.Config.OPENAI_BASE_URL == "https://custom.openai.com"


@pytest.mark.parametrize(
    ("env_value", "is_dev", "is_prod"),
    [
        ("development", True, False),
        ("DEVELOPMENT", True, False),
        ("production", False, True),
        ("PRODUCTION", False, True),
        ("staging", False, False),
    ],
)
def test_environment_detection(env_value, is_dev, is_prod):
    """Test environment detection methods."""
    with patch.object(Config, "ENVIRONMENT", env_value):
        assert Config.is_development() == is_dev
        assert Config.is_production() == is_prod


@pytest.mark.parametrize(
    ("log_level", "openai_level", "expected_level", "expected_openai_level"),
    [
        ("INFO", "WARNING", logging.INFO, logging.WARNING),
        ("DEBUG", "ERROR", logging.DEBUG, logging.ERROR),
        ("INVALID", "INVALID", logging.INFO, logging.WARNING),
    ],
)
def test_setup_logging_levels(
    log_level, openai_level, expected_level, expected_openai_level
):
    """Verify logging setup respects overrides and falls back on invalid values."""
    with (
        patch.object(Config, "LOG_LEVEL", log_level),
        patch.object(Config, "OPENAI_LOG_LEVEL", openai_level),
        patch("advisor.config.logging.basicConfig") as mock_basic,
        patch("advisor.config.logging.getLogger") as mock_get_logger,
    ):
        mock_logger = mock_get_logger.return_value

        Config.setup_logging()

        mock_basic.assert_called_once_with(
            level=expected_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        assert mock_get_logger.call_args_list == [
            call("openai"),
            call("httpx"),
            call("faiss"),
        ]
        mock_logger.setLevel.assert_called_with(expected_openai_level)
        assert mock_logger.setLevel.call_count == 3


def test_get_logger():
    """Test logger creation with specified name."""
    with patch("advisor.config.logging.getLogger") as mock_get_logger:
        mock_logger = mock_get_logger.return_value

        result = Config.get_logger("test.module")

        mock_get_logger.assert_called_once_with("test.module")
        assert result == mock_logger


def test_api_headers():
    with patch.object(Config, "API_USER_AGENT", "Advisor/2.0"):
        assert Config.get_api_headers() == {"User-Agent": "Advisor/2.0"}
    with patch.object(Config, "API_USER_AGENT", ""):
        assert Config.get_api_headers() == {}


@pytest.mark.parametrize(
    ("env_var", "invalid_value", "error_match"),
    [
        ("SESSION_TTL_SECONDS", "not_a_number", "invalid literal for int"),
        ("READY_POLL_INTERVAL", "not_a_float", "could not convert string to float"),
    ],
)
def test_type_conversion_errors(env_var, invalid_value, error_match):
    """Test handling of invalid type conversions."""
    with (
        patch.dict(os.environ, {env_var: invalid_value}),
        pytest.raises(ValueError, match=error_match),
    ):
        reload(config_module)


def test_no_dotenv_loading_when_missing():
    """Test that .env file loading is skipped when file doesn't exist."""
    with (
        patch.object(Path, "exists", return_value=False),
        patch("advisor.config.load_dotenv") as mock_load,
    ):
        reload(config_module)

        mock_load.assert_not_called()
