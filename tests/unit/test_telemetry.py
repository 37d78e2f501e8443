"""Unit tests for logging and tracing helpers."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest
import structlog
from opentelemetry import trace

from conftest import SERVER_URL
from datahub_sdk import telemetry
from datahub_sdk.client import DataHubClient
from datahub_sdk.config import ClientConfig, TelemetryConfig
from datahub_sdk.errors import RequestError


@pytest.fixture(autouse=True)
def reset_telemetry(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate the module-level tracer and logger per test."""
    monkeypatch.setattr(telemetry, "_tracer", None)
    monkeypatch.setattr(telemetry, "_logger", None)
    yield
    structlog.reset_defaults()


@pytest.fixture
def mock_tracer(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Install a mock tracer and return it."""
    tracer = MagicMock()
    monkeypatch.setattr(telemetry, "_tracer", tracer)
    return tracer


class TestConfigureTelemetry:
    """Tests for configure_telemetry."""

    def test_disabled_uses_noop_tracer(self) -> None:
        telemetry.configure_telemetry(TelemetryConfig(enabled=False))
        assert isinstance(telemetry.get_tracer(), trace.NoOpTracer)

    def test_disabled_silences_sdk_logger(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a disabled configuration drops SDK log lines."""
        telemetry.configure_telemetry(TelemetryConfig(enabled=False))

        telemetry.get_logger().warning("Authentication failed", strategy="basic")

        assert capsys.readouterr().out == ""

    def test_enabled_writes_json_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test an enabled configuration renders JSON at the configured level."""
        telemetry.configure_telemetry(TelemetryConfig(service_name="svc", log_level="warning"))
        logger = telemetry.get_logger()

        logger.info("hidden")
        logger.warning("shown", dataset="people")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert '"event": "shown"' in out
        assert '"service": "svc"' in out

    def test_logger_is_cached(self) -> None:
        assert telemetry.get_logger() is telemetry.get_logger()


class TestTraceOperation:
    """Tests for span helpers."""

    def test_span_name_and_attributes(self, mock_tracer: MagicMock) -> None:
        """Test spans are prefixed and None attributes are skipped."""
        with telemetry.trace_operation("discovery", attributes={"a": 1, "skipped": None}):
            pass

        mock_tracer.start_as_current_span.assert_called_once_with("datahub.discovery")
        span = mock_tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_called_once_with("a", 1)

    def test_sdk_error_code_recorded(self, mock_tracer: MagicMock) -> None:
        """Test an escaping SDK error leaves its code on the span."""
        error = RequestError("unable to get entities", status_code=500)

        with pytest.raises(RequestError):
            with telemetry.trace_operation("http_request"):
                raise error

        span = mock_tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_called_once_with("datahub.error.code", "NET_3002")
        span.record_exception.assert_called_once_with(error)

    def test_other_exception_propagates(self, mock_tracer: MagicMock) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            with telemetry.trace_operation("op"):
                raise RuntimeError("boom")

        span = mock_tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_not_called()
        span.record_exception.assert_called_once()

    def test_traced_uses_qualified_name(self, mock_tracer: MagicMock) -> None:
        @telemetry.traced()
        def add(a: int, b: int) -> int:
            """Add two numbers."""
            return a + b

        assert add(2, 3) == 5
        assert add.__doc__ == "Add two numbers."
        span_name = mock_tracer.start_as_current_span.call_args.args[0]
        assert span_name.startswith("datahub.")
        assert span_name.endswith("add")


class TestClientTelemetry:
    """Tests for how a client applies its telemetry section."""

    def test_explicit_section_is_applied(self) -> None:
        config = ClientConfig(server_url=SERVER_URL, telemetry=TelemetryConfig(enabled=False))

        DataHubClient(config).close()

        assert isinstance(telemetry.get_tracer(), trace.NoOpTracer)

    def test_default_section_leaves_logging_alone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        configure = MagicMock()
        monkeypatch.setattr("datahub_sdk.client.configure_telemetry", configure)

        DataHubClient(ClientConfig(server_url=SERVER_URL)).close()

        configure.assert_not_called()

    def test_overrides_keep_default_section(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a copied config does not turn the default section into an explicit one."""
        configure = MagicMock()
        monkeypatch.setattr("datahub_sdk.client.configure_telemetry", configure)
        config = ClientConfig(server_url=SERVER_URL).with_overrides(timeout=5.0)

        DataHubClient(config).close()

        configure.assert_not_called()
