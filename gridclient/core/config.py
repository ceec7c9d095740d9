"""
Configuration Management for the Grid Container Client

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after construction
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from gridclient.core.types import Result, Ok, Err
from gridclient.core import constants as C


@dataclass(frozen=True)
class TransactionConfig:
    """Transaction deadline and lock-wait behaviour."""

    transaction_timeout_ms: int = C.DEFAULT_TRANSACTION_TIMEOUT_MS
    lock_poll_interval_ms: int = C.DEFAULT_LOCK_POLL_INTERVAL_MS


@dataclass(frozen=True)
class BackendConfig:
    """In-memory backend configuration."""

    blob_compression_threshold_bytes: int = C.BLOB_COMPRESSION_THRESHOLD_BYTES
    max_trigger_count: int = C.MAX_TRIGGER_COUNT


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging and metrics configuration."""

    log_level: str = "INFO"
    log_json: bool = False
    metrics_enabled: bool = True


@dataclass(frozen=True)
class GridClientConfig:
    """Root configuration for the client."""

    transaction: TransactionConfig = field(default_factory=TransactionConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[GridClientConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with GRIDCLIENT_.
        Example: GRIDCLIENT_TRANSACTION_TIMEOUT_MS, GRIDCLIENT_LOG_LEVEL
        """
        try:
            transaction = TransactionConfig(
                transaction_timeout_ms=int(os.getenv(
                    "GRIDCLIENT_TRANSACTION_TIMEOUT_MS",
                    str(C.DEFAULT_TRANSACTION_TIMEOUT_MS),
                )),
                lock_poll_interval_ms=int(os.getenv(
                    "GRIDCLIENT_LOCK_POLL_INTERVAL_MS",
                    str(C.DEFAULT_LOCK_POLL_INTERVAL_MS),
                )),
            )

            backend = BackendConfig(
                blob_compression_threshold_bytes=int(os.getenv(
                    "GRIDCLIENT_BLOB_COMPRESSION_THRESHOLD",
                    str(C.BLOB_COMPRESSION_THRESHOLD_BYTES),
                )),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("GRIDCLIENT_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("GRIDCLIENT_LOG_JSON", "false").lower() in ("1", "true", "yes"),
                metrics_enabled=os.getenv("GRIDCLIENT_METRICS", "true").lower() in ("1", "true", "yes"),
            )

            return Ok(cls(transaction=transaction, backend=backend, observability=observability))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.transaction.transaction_timeout_ms < C.MIN_TRANSACTION_TIMEOUT_MS:
            return Err("transaction_timeout_ms must be positive")
        if self.transaction.lock_poll_interval_ms <= 0:
            return Err("lock_poll_interval_ms must be positive")
        if self.backend.blob_compression_threshold_bytes < 0:
            return Err("blob_compression_threshold_bytes cannot be negative")
        if self.observability.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return Err(f"Unknown log level: {self.observability.log_level}")
        return Ok(None)
