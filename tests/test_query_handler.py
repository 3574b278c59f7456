import pytest
from langchain_core.language_models import FakeListChatModel

from application import pipeline
from application.adapter import adapt
from application.query_handler import AssistantQueryHandler, build_query_handler, extract_query
from domain.models import ErrorKind, PipelineError, QueryResponse


def test_assistant_answers_with_model_reply():
    handler = AssistantQueryHandler(FakeListChatModel(responses=["Your order is on the way"]))

    result = handler(adapt(None, {"query": "track my order"}))

    assert result == QueryResponse(success=True, reply="Your order is on the way")


def test_text_field_is_accepted_as_query():
    assert extract_query(adapt(None, {"text": "  hi  "})) == "hi"


@pytest.mark.parametrize("payload", [None, {"query": "   "}, {"other": "x"}])
def test_missing_query_is_a_validation_error(payload):
    handler = AssistantQueryHandler(FakeListChatModel(responses=["unused"]))

    result = handler(adapt(None, payload))

    assert isinstance(result, PipelineError)
    assert result.kind is ErrorKind.VALIDATION


def test_unconfigured_model_reports_startup_error(settings):
    handler = build_query_handler(settings)

    result = handler(adapt(None, {"query": "hi"}))

    assert result.kind is ErrorKind.STARTUP
    assert "MISTRAL_API_KEY" in result.message


def test_pipeline_turns_exceptions_into_handler_errors():
    def broken(request):
        raise KeyError("boom")

    result = pipeline.run(adapt(None, {"query": "hi"}), broken)

    assert isinstance(result, PipelineError)
    assert result.kind is ErrorKind.HANDLER
    assert result.exception_type == "KeyError"
    assert "test_query_handler.py:" in result.location
    assert 0 < len(result.trace) <= pipeline.MAX_TRACE_FRAMES
    assert "broken" in result.trace[0]


def test_error_trace_is_capped():
    def recurse(n):
        if n == 0:
            raise RuntimeError("deep")
        recurse(n - 1)

    try:
        recurse(30)
    except RuntimeError as exc:
        error = pipeline.error_from_exception(exc)

    assert len(error.trace) == pipeline.MAX_TRACE_FRAMES
    assert error.message == "deep"
