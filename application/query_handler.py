from typing import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from domain.models import ErrorKind, NormalizedRequest, PipelineError, QueryResponse
from infrastructure.config import Settings
from infrastructure.llm import get_llm

QueryHandler = Callable[[NormalizedRequest], QueryResponse | PipelineError]

SYSTEM_PROMPT = (
    "You are a helpful shopping assistant for an online store. "
    "Answer questions about products, orders and store policies concisely. "
    "If you do not know something about the store, say so instead of guessing. "
    "Answer in the same language the user writes in."
)

QUERY_FIELDS = ("query", "text")


def extract_query(request: NormalizedRequest) -> str:
    for name in QUERY_FIELDS:
        value = (request.input(name) or "").strip()
        if value:
            return value
    return ""


class AssistantQueryHandler:
    """Answers a query by asking the chat model."""

    def __init__(self, llm: BaseChatModel):
        prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_PROMPT),
            ("human", "{input}"),
        ])
        self._chain = prompt | llm | StrOutputParser()

    def __call__(self, request: NormalizedRequest) -> QueryResponse | PipelineError:
        query = extract_query(request)
        if not query:
            return PipelineError(kind=ErrorKind.VALIDATION, message="Query is required")
        reply = self._chain.invoke({"input": query})
        return QueryResponse(success=True, reply=reply)


def unconfigured_handler(request: NormalizedRequest) -> PipelineError:
    return PipelineError(
        kind=ErrorKind.STARTUP,
        message="Mistral API key is not configured. Set MISTRAL_API_KEY in the .env file.",
    )


def build_query_handler(settings: Settings) -> QueryHandler:
    if not settings.mistral_api_key:
        return unconfigured_handler
    return AssistantQueryHandler(get_llm(settings))
