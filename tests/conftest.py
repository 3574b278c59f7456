import pytest

from api.gateway import Gateway
from domain.models import NormalizedRequest, QueryResponse
from infrastructure.config import Settings

TEST_KEY = "base64:dGVzdC1rZXktdGVzdC1rZXktdGVzdC1rZXktMTIzNA=="


class RecordingHandler:
    """Echoes the query back and remembers what it was called with."""

    def __init__(self):
        self.requests: list[NormalizedRequest] = []

    def __call__(self, request: NormalizedRequest) -> QueryResponse:
        self.requests.append(request)
        return QueryResponse(success=True, reply=f"echo: {request.input('query', '')}")


@pytest.fixture
def settings(tmp_path):
    (tmp_path / "storage").mkdir()
    return Settings(
        app_key=TEST_KEY,
        app_debug=False,
        base_path=tmp_path,
        env_file=tmp_path / ".env",
    )


@pytest.fixture
def debug_settings(settings):
    return settings.model_copy(update={"app_debug": True})


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def gateway(settings, handler):
    return Gateway(settings, handler)
