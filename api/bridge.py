"""Translate pipeline results into responses and hand them to the caller.

Nothing but ``emit`` talks to the caller. Anything third-party code prints to
stdout while a request is being processed is captured and thrown away.
"""
import io
import logging
import sys
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterable, Iterator

from fastapi import BackgroundTasks
from fastapi.responses import Response

from domain.models import ErrorKind, ErrorPayload, OutboundResponse, PipelineError, QueryResponse

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STARTUP: 500,
    ErrorKind.HANDLER: 500,
}

CleanupHook = Callable[[], None]


class Mode(str, Enum):
    EMBEDDED = "embedded"
    STANDALONE = "standalone"


class OutputRouter:
    """Stands in for ``sys.stdout``; threads that hold a sink write to it instead."""

    def __init__(self, target):
        self._target = target
        self._local = threading.local()

    @property
    def target(self):
        return self._target

    def _stream(self):
        sink = getattr(self._local, "sink", None)
        return sink if sink is not None else self._target

    def capture(self, sink: io.StringIO) -> io.StringIO | None:
        previous = getattr(self._local, "sink", None)
        self._local.sink = sink
        return previous

    def release(self, previous: io.StringIO | None) -> None:
        self._local.sink = previous

    def write(self, text: str) -> int:
        return self._stream().write(text)

    def writelines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        self._stream().flush()

    def __getattr__(self, name):
        return getattr(self._target, name)


_router_lock = threading.Lock()


def install_output_router() -> OutputRouter:
    """Put an OutputRouter in front of whatever ``sys.stdout`` currently is."""
    with _router_lock:
        if not isinstance(sys.stdout, OutputRouter):
            sys.stdout = OutputRouter(sys.stdout)
        return sys.stdout


@contextmanager
def discard_incidental_output() -> Iterator[io.StringIO]:
    # sys.stdout is swapped at most once; each thread gets its own sink
    sink = io.StringIO()
    router = install_output_router()
    previous = router.capture(sink)
    try:
        yield sink
    finally:
        router.release(previous)
        stray = sink.getvalue()
        if stray:
            logger.warning("Discarded %d characters of incidental output", len(stray))


def translate(result: QueryResponse | PipelineError, debug: bool = False) -> OutboundResponse:
    if isinstance(result, QueryResponse):
        return OutboundResponse(status_code=200, body=result.model_dump_json(exclude_none=True))

    message = INTERNAL_ERROR_MESSAGE if result.kind is ErrorKind.HANDLER else result.message
    payload = ErrorPayload(message=message)
    if debug:
        payload = payload.model_copy(update={
            "error": result.message,
            "file": result.location,
            "type": result.exception_type,
            "details": result.details or None,
            "trace": result.trace or None,
        })
    return OutboundResponse(
        status_code=STATUS_BY_KIND[result.kind],
        body=payload.model_dump_json(exclude_none=True),
    )


def run_cleanup(hooks: Iterable[CleanupHook]) -> None:
    for hook in hooks:
        try:
            hook()
        except Exception:
            # the response is already out, nothing left to report to
            logger.exception("Cleanup hook %r failed", hook)


def _cleanup_tasks(hooks: list[CleanupHook]) -> BackgroundTasks | None:
    if not hooks:
        return None
    tasks = BackgroundTasks()
    tasks.add_task(run_cleanup, hooks)
    return tasks


def emit(
    response: OutboundResponse,
    mode: Mode,
    cleanup: Iterable[CleanupHook] = (),
) -> str | Response:
    """Return the raw body to an embedding host, or a transport response."""
    hooks = list(cleanup)
    if mode is Mode.EMBEDDED:
        run_cleanup(hooks)
        return response.body

    return Response(
        content=response.body,
        status_code=response.status_code,
        headers=response.headers,
        background=_cleanup_tasks(hooks),
    )
