"""Unit tests for telemetry service"""

from unittest.mock import MagicMock, patch

from registry_mirror.models.sync_result import FailedItem, SyncResult, SyncStats
from registry_mirror.services.sync_runner import SourceRunError
from registry_mirror.services.telemetry import TelemetryService


def _configure(mock_config, logging_enabled, tracing_enabled):
    mock_config.otel_enabled = logging_enabled
    mock_config.otel_tracing_enabled = tracing_enabled
    mock_config.otel_endpoint = "http://localhost:4318"
    mock_config.otel_service_name = "test-service"
    mock_config.otel_service_version = "1.0.0"


def _result(failed=()):
    return SyncResult(
        registry="demo",
        success=["a", "b"],
        failed=[FailedItem(name=name, error="404") for name in failed],
        skipped=["index"],
        stats=SyncStats(total=5, synced=2, failed=len(failed), skipped=1, duration_ms=1200),
    )


class TestTelemetryService:
    """Test telemetry service initialization and logging"""

    @patch("registry_mirror.services.telemetry.config")
    def test_telemetry_service_disabled(self, mock_config):
        """Test that telemetry can be disabled"""
        _configure(mock_config, False, False)

        service = TelemetryService()

        assert service.logging_enabled is False
        assert service.tracing_enabled is False
        assert service.otel_logger is None

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_telemetry_service_enabled(self, mock_set_logger_provider, mock_config):
        """Test that telemetry initializes when enabled"""
        _configure(mock_config, True, False)

        service = TelemetryService()

        assert service.logging_enabled is True
        assert service.tracing_enabled is False
        assert service.logger_provider is not None
        mock_set_logger_provider.assert_called_once()

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.trace.set_tracer_provider")
    def test_telemetry_tracing_enabled(self, mock_set_tracer_provider, mock_config):
        """Test that tracing initializes when enabled"""
        _configure(mock_config, False, True)

        service = TelemetryService()

        assert service.tracing_enabled is True
        assert service.tracer_provider is not None
        mock_set_tracer_provider.assert_called_once()

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.LoggerProvider")
    def test_initialization_failure_disables_logging(self, mock_provider, mock_config):
        """Test that a failing exporter setup turns logging off instead of raising"""
        _configure(mock_config, True, False)
        mock_provider.side_effect = RuntimeError("no collector")

        service = TelemetryService()

        assert service.logging_enabled is False

    @patch("registry_mirror.services.telemetry.config")
    def test_log_sync_result_when_disabled(self, mock_config):
        """Test that logging does nothing when disabled"""
        _configure(mock_config, False, False)

        service = TelemetryService()
        # Should not raise any errors
        service.log_sync_result("demo", result=_result())

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_log_sync_result_success(self, mock_set_logger_provider, mock_config):
        """Test logging a completed sync"""
        _configure(mock_config, True, False)
        mock_otel_logger = MagicMock()

        service = TelemetryService()
        service.otel_logger = mock_otel_logger

        service.log_sync_result("demo", result=_result())

        mock_otel_logger.emit.assert_called_once()
        call_kwargs = mock_otel_logger.emit.call_args.kwargs
        attributes = call_kwargs["attributes"]
        assert attributes["registry.name"] == "demo"
        assert attributes["sync.success"] is True
        assert attributes["sync.total"] == 5
        assert attributes["sync.synced"] == 2
        assert attributes["sync.skipped"] == 1
        assert attributes["sync.duration_ms"] == 1200
        assert call_kwargs["body"].startswith("[sync demo] SUCCESS")
        assert call_kwargs["severity_number"].value == 9

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_log_sync_result_with_item_failures(self, mock_set_logger_provider, mock_config):
        """Test that item failures are listed and raise severity"""
        _configure(mock_config, True, False)
        mock_otel_logger = MagicMock()

        service = TelemetryService()
        service.otel_logger = mock_otel_logger

        service.log_sync_result("demo", result=_result(failed=["gamma"]))

        call_kwargs = mock_otel_logger.emit.call_args.kwargs
        assert "failed_items=gamma" in call_kwargs["body"]
        assert call_kwargs["severity_number"].value == 17

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_log_sync_result_with_index_error(self, mock_set_logger_provider, mock_config):
        """Test that an index file write failure is reported at error severity"""
        _configure(mock_config, True, False)
        mock_otel_logger = MagicMock()

        service = TelemetryService()
        service.otel_logger = mock_otel_logger

        result = _result().model_copy(update={"index_error": "Failed to write index files"})
        service.log_sync_result("demo", result=result)

        call_kwargs = mock_otel_logger.emit.call_args.kwargs
        assert call_kwargs["attributes"]["sync.index_error"] == "Failed to write index files"
        assert "index=FAILED" in call_kwargs["body"]
        assert call_kwargs["severity_number"].value == 17

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_log_sync_result_with_error(self, mock_set_logger_provider, mock_config):
        """Test logging a registry whose pipeline raised"""
        _configure(mock_config, True, False)
        mock_otel_logger = MagicMock()

        service = TelemetryService()
        service.otel_logger = mock_otel_logger

        service.log_sync_result("demo", error=SourceRunError("demo", "x" * 1000))

        attributes = mock_otel_logger.emit.call_args.kwargs["attributes"]
        assert attributes["sync.success"] is False
        assert attributes["error.type"] == "SourceRunError"
        assert len(attributes["error.message"]) == 503

    @patch("registry_mirror.services.telemetry.config")
    @patch("registry_mirror.services.telemetry.set_logger_provider")
    def test_emit_failure_is_swallowed(self, mock_set_logger_provider, mock_config):
        """Test that telemetry errors never break a sync"""
        _configure(mock_config, True, False)
        mock_otel_logger = MagicMock()
        mock_otel_logger.emit.side_effect = RuntimeError("exporter down")

        service = TelemetryService()
        service.otel_logger = mock_otel_logger

        service.log_sync_result("demo", result=_result())

    def test_severity_to_number(self):
        """Test Python logging level to OTel severity conversion"""
        with patch("registry_mirror.services.telemetry.config") as mock_config:
            _configure(mock_config, False, False)
            service = TelemetryService()

        assert service._severity_to_number(50) == 21
        assert service._severity_to_number(40) == 17
        assert service._severity_to_number(30) == 13
        assert service._severity_to_number(20) == 9
        assert service._severity_to_number(10) == 5
