import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from api.gateway import Gateway
from application.adapter import TransportInput
from application.diagnostics import build_report, health
from domain.models import DiagnosticReport

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


async def read_transport(request: Request) -> TransportInput:
    """Collect body and query-string fields. Unreadable bodies become empty."""
    content_type = request.headers.get("content-type", "")
    raw = await request.body()
    body = {}
    if "application/json" in content_type and raw:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed JSON body")
            data = None
        if isinstance(data, dict):
            body = data
    elif "application/x-www-form-urlencoded" in content_type:
        body = dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))

    return TransportInput(
        body=body,
        query=dict(request.query_params),
        content_type=content_type,
        headers=dict(request.headers),
    )


@router.post("/query")
async def query(request: Request, gateway: Gateway = Depends(get_gateway)):
    """Answer one chat query."""
    transport = await read_transport(request)
    # the handler blocks on the model call
    return await run_in_threadpool(gateway.handle_transport, transport)


@router.get("/health")
def health_check(gateway: Gateway = Depends(get_gateway)):
    if gateway.startup_error is not None:
        return gateway.handle_transport(TransportInput())
    return health(gateway.settings)


@router.get("/diagnostic", response_model=DiagnosticReport)
def diagnostic(gateway: Gateway = Depends(get_gateway)):
    return build_report(gateway.base_path)
