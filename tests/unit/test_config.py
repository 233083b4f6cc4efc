"""Unit tests for client configuration."""

import pytest

from taskfire.config import DEFAULT_URL, ClientConfig
from taskfire.errors import ConfigurationError


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()

        assert config.url == DEFAULT_URL
        assert config.debug is False
        assert config.project_id is None
        assert config.request_timeout is None
        assert config.max_pending is None
        assert config.reject_pending_on_close is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"url": ""},
            {"request_timeout": 0},
            {"request_timeout": -1.0},
            {"max_pending": 0},
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ConfigurationError):
            ClientConfig(**kwargs)

    def test_with_overrides_skips_none(self):
        config = ClientConfig(url="wss://a/ws", debug=True)

        updated = config.with_overrides(url=None, debug=None, max_pending=3)

        assert updated.url == "wss://a/ws"
        assert updated.debug is True
        assert updated.max_pending == 3
        assert config.max_pending is None

    def test_with_overrides_rejects_unknown(self):
        with pytest.raises(ConfigurationError, match="bogus"):
            ClientConfig().with_overrides(bogus=1)


class TestFromEnv:
    """Test reading TASKFIRE_* variables."""

    def test_empty_environment(self):
        assert ClientConfig.from_env({}) == ClientConfig()

    def test_reads_all_variables(self):
        config = ClientConfig.from_env(
            {
                "TASKFIRE_URL": "wss://env/ws",
                "TASKFIRE_DEBUG": "true",
                "TASKFIRE_PROJECT_ID": "p_1",
                "TASKFIRE_REQUEST_TIMEOUT": "1.5",
                "TASKFIRE_MAX_PENDING": "10",
            }
        )

        assert config.url == "wss://env/ws"
        assert config.debug is True
        assert config.project_id == "p_1"
        assert config.request_timeout == 1.5
        assert config.max_pending == 10

    @pytest.mark.parametrize(("value", "expected"), [("1", True), ("Yes", True), ("0", False), ("off", False)])
    def test_debug_flag(self, value, expected):
        assert ClientConfig.from_env({"TASKFIRE_DEBUG": value}).debug is expected

    def test_overrides_win(self):
        config = ClientConfig.from_env({"TASKFIRE_URL": "wss://env/ws"}, url="wss://arg/ws")

        assert config.url == "wss://arg/ws"

    @pytest.mark.parametrize(
        "environ",
        [
            {"TASKFIRE_REQUEST_TIMEOUT": "soon"},
            {"TASKFIRE_MAX_PENDING": "many"},
            {"TASKFIRE_MAX_PENDING": "0"},
        ],
    )
    def test_invalid_values(self, environ):
        with pytest.raises(ConfigurationError):
            ClientConfig.from_env(environ)

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError):
            ClientConfig.from_env({}, retries=3)

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("TASKFIRE_PROJECT_ID", "p_env")

        assert ClientConfig.from_env().project_id == "p_env"
