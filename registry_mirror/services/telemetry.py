"""OpenTelemetry logging and tracing for registry sync runs"""

import logging
from datetime import datetime, timezone

from opentelemetry import trace
from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from registry_mirror.config import config
from registry_mirror.models.sync_result import SyncResult

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


class TelemetryService:
    """Handle OpenTelemetry logging and tracing for sync runs"""

    def __init__(self):
        self.logging_enabled = config.otel_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider = None
        self.tracer_provider = None
        self.otel_logger = None

        if self.logging_enabled:
            try:
                self._initialize_logging()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel logging: {e}. Logging disabled.")
                self.logging_enabled = False

        if self.tracing_enabled:
            try:
                self._initialize_tracing()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel tracing: {e}. Tracing disabled.")
                self.tracing_enabled = False

    def _resource(self) -> Resource:
        return Resource(
            attributes={
                SERVICE_NAME: config.otel_service_name,
                SERVICE_VERSION: config.otel_service_version,
            }
        )

    def _initialize_logging(self) -> None:
        """Initialize OpenTelemetry logging with OTLP log exporter"""
        self.logger_provider = LoggerProvider(resource=self._resource())

        log_endpoint = config.otel_endpoint
        if not log_endpoint.endswith("/v1/logs"):
            log_endpoint = f"{log_endpoint.rstrip('/')}/v1/logs"

        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=log_endpoint))
        )
        set_logger_provider(self.logger_provider)
        self.otel_logger = self.logger_provider.get_logger(__name__)

        logger.info(f"OpenTelemetry logging initialized with endpoint: {log_endpoint}")

    def _initialize_tracing(self) -> None:
        """Initialize OpenTelemetry tracing with OTLP trace exporter"""
        self.tracer_provider = TracerProvider(resource=self._resource())

        trace_endpoint = config.otel_endpoint
        if not trace_endpoint.endswith("/v1/traces"):
            trace_endpoint = f"{trace_endpoint.rstrip('/')}/v1/traces"

        self.tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=trace_endpoint))
        )
        trace.set_tracer_provider(self.tracer_provider)

        logger.info(f"OpenTelemetry tracing initialized with endpoint: {trace_endpoint}")

    def get_tracer(self) -> trace.Tracer:
        """Tracer for sync spans (no-op when tracing is disabled)"""
        return trace.get_tracer(__name__)

    def log_sync_result(
        self,
        registry: str,
        result: SyncResult | None = None,
        error: Exception | None = None,
    ) -> None:
        """
        Emit one log record for a registry sync

        Args:
            registry: Registry name
            result: Sync result (if the pipeline completed)
            error: The error (if the pipeline raised)
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            attributes: dict[str, str | int | float | bool] = {
                "registry.name": registry,
                "sync.success": error is None,
            }
            body_parts = [f"[sync {registry}]", "SUCCESS" if error is None else "FAILED"]

            if result:
                attributes["sync.dry_run"] = result.dry_run
                attributes["sync.total"] = result.stats.total
                attributes["sync.synced"] = result.stats.synced
                attributes["sync.failed"] = result.stats.failed
                attributes["sync.skipped"] = result.stats.skipped
                attributes["sync.duration_ms"] = result.stats.duration_ms
                body_parts.append(
                    f"synced={result.stats.synced} failed={result.stats.failed} "
                    f"time={result.stats.duration_ms}ms"
                )
                if result.failed:
                    body_parts.append(
                        "failed_items=" + ",".join(item.name for item in result.failed)
                    )
                if result.index_error:
                    attributes["sync.index_error"] = result.index_error[:MAX_ERROR_LENGTH]
                    body_parts.append("index=FAILED")

            if error:
                error_message = str(error)
                if len(error_message) > MAX_ERROR_LENGTH:
                    error_message = error_message[:MAX_ERROR_LENGTH] + "..."
                attributes["error.type"] = type(error).__name__
                attributes["error.message"] = error_message
                body_parts.append(f"error={type(error).__name__}")

            failed = error or (result and (result.failed or result.index_error))
            severity = logging.ERROR if failed else logging.INFO
            self.otel_logger.emit(
                body=" ".join(body_parts),
                severity_number=SeverityNumber(self._severity_to_number(severity)),
                attributes=attributes,
                timestamp=int(datetime.now(timezone.utc).timestamp() * 1e9),
            )

        except Exception as e:
            # Don't let telemetry errors break a sync
            logger.warning(f"Failed to log telemetry: {e}")

    def _severity_to_number(self, level: int) -> int:
        """Convert Python logging level to OpenTelemetry severity number"""
        if level >= logging.CRITICAL:
            return 21  # FATAL
        elif level >= logging.ERROR:
            return 17  # ERROR
        elif level >= logging.WARNING:
            return 13  # WARN
        elif level >= logging.INFO:
            return 9  # INFO
        else:
            return 5  # DEBUG


_telemetry_service: TelemetryService | None = None
_instrumentation_initialized = False


def _ensure_instrumentation_initialized() -> None:
    """Instrument httpx before any client is created"""
    global _instrumentation_initialized
    if not _instrumentation_initialized and config.otel_tracing_enabled:
        try:
            HTTPXClientInstrumentor().instrument()
            _instrumentation_initialized = True
            logger.info("HTTP request tracing instrumentation initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize HTTP tracing instrumentation: {e}")


def get_telemetry_service() -> TelemetryService:
    """Get or create the global telemetry service instance"""
    global _telemetry_service
    _ensure_instrumentation_initialized()
    if _telemetry_service is None:
        _telemetry_service = TelemetryService()
    return _telemetry_service
