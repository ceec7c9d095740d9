"""
Configuration loading and validation tests.

Run: python -m pytest gridclient/tests/test_config.py -v
"""

from __future__ import annotations

import pytest

from gridclient.core import constants as C
from gridclient.core.config import (
    BackendConfig,
    GridClientConfig,
    ObservabilityConfig,
    TransactionConfig,
)
from gridclient.core.errors import ValidationError
from gridclient.session.store import GridStore


class TestDefaults:
    def test_default_values(self):
        config = GridClientConfig()
        assert config.transaction.transaction_timeout_ms == C.DEFAULT_TRANSACTION_TIMEOUT_MS
        assert config.backend.max_trigger_count == C.MAX_TRIGGER_COUNT
        assert config.observability.log_level == "INFO"
        assert config.validate().is_ok()

    def test_frozen(self):
        with pytest.raises(AttributeError):
            GridClientConfig().transaction = TransactionConfig()


class TestValidation:
    @pytest.mark.parametrize("config", [
        GridClientConfig(transaction=TransactionConfig(transaction_timeout_ms=0)),
        GridClientConfig(transaction=TransactionConfig(lock_poll_interval_ms=0)),
        GridClientConfig(backend=BackendConfig(blob_compression_threshold_bytes=-1)),
        GridClientConfig(observability=ObservabilityConfig(log_level="VERBOSE")),
    ])
    def test_invalid(self, config):
        assert config.validate().is_err()

    def test_store_rejects_invalid_config(self):
        config = GridClientConfig(transaction=TransactionConfig(transaction_timeout_ms=-5))
        with pytest.raises(ValidationError):
            GridStore(config=config)


class TestFromEnv:
    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("GRIDCLIENT_TRANSACTION_TIMEOUT_MS", "2500")
        monkeypatch.setenv("GRIDCLIENT_LOG_LEVEL", "debug")
        monkeypatch.setenv("GRIDCLIENT_LOG_JSON", "yes")
        monkeypatch.setenv("GRIDCLIENT_METRICS", "false")
        config = GridClientConfig.from_env().unwrap()
        assert config.transaction.transaction_timeout_ms == 2500
        assert config.observability.log_level == "DEBUG"
        assert config.observability.log_json is True
        assert config.observability.metrics_enabled is False

    def test_unparseable_number(self, monkeypatch):
        monkeypatch.setenv("GRIDCLIENT_LOCK_POLL_INTERVAL_MS", "soon")
        result = GridClientConfig.from_env()
        assert result.is_err()
        assert "Configuration error" in result.error
