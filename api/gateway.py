import logging
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping

from fastapi.responses import Response

from api.bridge import CleanupHook, Mode, discard_incidental_output, emit, translate
from application import pipeline
from application.adapter import TransportInput, adapt
from application.diagnostics import build_report
from application.query_handler import QueryHandler, build_query_handler
from domain.models import ErrorKind, OutboundResponse, PipelineError
from infrastructure.config import BASE_DIR, Settings, StartupError, bootstrap

logger = logging.getLogger(__name__)


class Gateway:
    """Runs one request through adapt -> handle -> translate -> emit."""

    def __init__(
        self,
        settings: Settings | None,
        handler: QueryHandler | None,
        startup_error: StartupError | None = None,
        base_path: Path = BASE_DIR,
        cleanup_hooks: Iterable[CleanupHook] = (),
    ):
        if startup_error is None and (settings is None or handler is None):
            raise ValueError("settings and handler are required unless startup failed")
        self.settings = settings
        self.handler = handler
        self.startup_error = startup_error
        self.base_path = settings.base_path if settings else base_path
        self.cleanup_hooks = tuple(cleanup_hooks)

    @classmethod
    def from_base_path(cls, base_path: Path = BASE_DIR, **kwargs) -> "Gateway":
        try:
            settings = bootstrap(base_path)
        except StartupError as exc:
            logger.error("Startup failed: %s", exc.message)
            return cls(None, None, startup_error=exc, base_path=base_path, **kwargs)
        return cls(settings, build_query_handler(settings), **kwargs)

    @property
    def debug(self) -> bool:
        # without settings there is no APP_DEBUG to honor; report everything
        return self.settings.app_debug if self.settings else True

    @property
    def log_level(self) -> str:
        return self.settings.log_level if self.settings else "INFO"

    def startup_failure(self) -> PipelineError:
        report = build_report(self.base_path)
        details = list(self.startup_error.details)
        details.extend(
            f"{check.name}: {check.detail}" for check in report.checks if check.status == "fail"
        )
        return PipelineError(
            kind=ErrorKind.STARTUP,
            message=self.startup_error.message,
            exception_type=type(self.startup_error).__name__,
            details=details,
        )

    def process(
        self,
        transport: TransportInput | None = None,
        host_payload: Mapping[str, Any] | None = None,
    ) -> OutboundResponse:
        if self.startup_error is not None:
            return translate(self.startup_failure(), self.debug)
        try:
            request = adapt(transport, host_payload)
            result = pipeline.run(request, self.handler)
        except Exception as exc:
            logger.exception("Request processing failed")
            result = pipeline.error_from_exception(exc)
        return translate(result, self.debug)

    def handle_embedded(self, payload: Mapping[str, Any] | None) -> str:
        """Entry point for an embedding host. Returns the JSON body as a string."""
        with discard_incidental_output():
            response = self.process(host_payload=payload)
        return emit(response, Mode.EMBEDDED, self.cleanup_hooks)

    def handle_transport(self, transport: TransportInput) -> Response:
        with discard_incidental_output():
            response = self.process(transport=transport)
        return emit(response, Mode.STANDALONE, self.cleanup_hooks)

    def error_response(self, exc: Exception) -> Response:
        response = translate(pipeline.error_from_exception(exc), self.debug)
        return emit(response, Mode.STANDALONE)


_gateways: dict[Path, Gateway] = {}
_gateways_lock = threading.Lock()


def gateway_for(base_path: Path = BASE_DIR) -> Gateway:
    """Build the gateway once per process. A failed startup is retried next call."""
    # held across bootstrap so concurrent first calls provision the key once
    with _gateways_lock:
        gateway = _gateways.get(base_path)
        if gateway is None:
            gateway = Gateway.from_base_path(base_path)
            if gateway.startup_error is None:
                _gateways[base_path] = gateway
        return gateway


def handle_embedded_request(payload: Mapping[str, Any], base_path: Path = BASE_DIR) -> str:
    """Process-wide entry point for hosts calling in without an HTTP server."""
    return gateway_for(base_path).handle_embedded(payload)
