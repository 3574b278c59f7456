import logging
import traceback

from application.query_handler import QueryHandler
from domain.models import ErrorKind, NormalizedRequest, PipelineError, QueryResponse

logger = logging.getLogger(__name__)

MAX_TRACE_FRAMES = 10


def error_from_exception(
    exc: BaseException,
    kind: ErrorKind = ErrorKind.HANDLER,
    message: str | None = None,
    details: list[str] | None = None,
) -> PipelineError:
    """Capture what a debug response needs to know about ``exc``."""
    frames = traceback.extract_tb(exc.__traceback__)
    location = f"{frames[-1].filename}:{frames[-1].lineno}" if frames else None
    # innermost frame first
    trace = [
        f"#{i} {frame.filename}:{frame.lineno} in {frame.name}"
        for i, frame in enumerate(reversed(frames[-MAX_TRACE_FRAMES:]))
    ]
    return PipelineError(
        kind=kind,
        message=message or str(exc) or type(exc).__name__,
        exception_type=type(exc).__name__,
        location=location,
        trace=trace,
        details=details or [],
    )


def run(request: NormalizedRequest, handler: QueryHandler) -> QueryResponse | PipelineError:
    try:
        return handler(request)
    except Exception as exc:
        logger.exception("Query handler failed")
        return error_from_exception(exc, ErrorKind.HANDLER)
