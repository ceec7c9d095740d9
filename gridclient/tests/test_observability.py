"""
Metrics export and structured logging tests.

Run: python -m pytest gridclient/tests/test_observability.py -v
"""

from __future__ import annotations

import io
import json
import logging

import pytest

from gridclient.core.config import ObservabilityConfig
from gridclient.core.errors import ErrorCode, StaleStateError
from gridclient.observability import (
    ClientMetrics,
    JsonFormatter,
    MetricsCollector,
    StructuredLogger,
    setup_logging,
)

from conftest import keyed_info


class TestMetrics:
    def test_counter_rejects_negative(self):
        counter = MetricsCollector().counter("c_total")
        with pytest.raises(ValueError):
            counter.inc(-1)

    def test_prometheus_export(self):
        collector = MetricsCollector()
        metrics = ClientMetrics(collector)
        metrics.row_operation("orders", "put")
        metrics.aborted("orders", "timeout")
        metrics.observe_operation("commit", 0.002)
        assert metrics.operation_seconds.count(operation="commit") == 1
        text = collector.export_prometheus()

        assert "# TYPE gridclient_row_operations_total counter" in text
        assert 'gridclient_row_operations_total{container="orders",operation="put"} 1.0' in text
        assert 'gridclient_aborts_total{container="orders",reason="timeout"} 1.0' in text
        assert 'gridclient_operation_seconds_bucket{le="+Inf",operation="commit"} 1' in text
        assert 'gridclient_operation_seconds_count{operation="commit"} 1' in text

    def test_disabled_records_nothing(self):
        collector = MetricsCollector()
        metrics = ClientMetrics(collector, enabled=False)
        metrics.committed("orders")
        assert metrics.commits.get(container="orders") == 0.0

    @pytest.mark.asyncio
    async def test_session_activity_recorded(self, store, metrics):
        container = await store.put_container(keyed_info())
        await container.put([1, "x"])
        await container.get(1)
        assert metrics.row_operations.get(container="items", operation="put") == 1.0
        assert metrics.commits.get(container="items") == 1.0
        assert metrics.open_sessions.get(container="items") == 1.0
        await container.close()
        assert metrics.open_sessions.get(container="items") == 0.0


class TestLogging:
    def test_json_formatter_lifts_session_fields(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter())
        target = logging.getLogger("gridclient.tests.json")
        target.addHandler(handler)
        target.setLevel(logging.INFO)
        try:
            log = StructuredLogger("gridclient.tests.json").with_extra(container="orders", session_id="abc")
            with StructuredLogger.context(request="r1"):
                log.info("committed", transaction_id="t1")
        finally:
            target.removeHandler(handler)

        record = json.loads(stream.getvalue())
        assert record["message"] == "committed"
        assert record["container"] == "orders"
        assert record["session_id"] == "abc"
        assert record["transaction_id"] == "t1"
        assert record["request"] == "r1"

    def test_setup_logging(self):
        stream = io.StringIO()
        setup_logging(ObservabilityConfig(log_level="WARNING", log_json=True), stream=stream)
        package_logger = logging.getLogger("gridclient")
        try:
            logging.getLogger("gridclient.storage").info("hidden")
            logging.getLogger("gridclient.storage").warning("shown")
            lines = stream.getvalue().strip().splitlines()
            assert len(lines) == 1
            assert json.loads(lines[0])["level"] == "WARNING"
            assert package_logger.level == logging.WARNING
        finally:
            package_logger.handlers.clear()
            package_logger.setLevel(logging.NOTSET)


class TestErrorSerialization:
    def test_to_dict(self):
        error = StaleStateError.container_dropped("orders")
        data = error.to_dict()
        assert data["code"] == "TRANSACTION_STALE_STATE"
        assert data["code_value"] == ErrorCode.TRANSACTION_STALE_STATE.value
        assert data["error_id"] == error.error_id
        assert data["context"]["container"] == "orders"
        assert json.loads(json.dumps(data))["message"] == error.message
