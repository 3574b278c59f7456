import logging
from enum import Enum

import httpx

from domain.models import ChatMessage, QueryRequest

logger = logging.getLogger(__name__)

BACKEND_URL = "http://localhost:8000/api/query"

GREETING = "Hello! How can I help you today?"
FALLBACK_MESSAGE = "Error! Try again later."
REQUEST_TIMEOUT = 120.0


class WidgetState(str, Enum):
    IDLE = "idle"
    OPEN = "open"


class ChatWidget:
    """Chat transcript plus the open/minimized toggle.

    Each ``send_message`` call is independent: replies land in the transcript
    in the order they complete, not the order they were sent.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        endpoint: str = BACKEND_URL,
        auth_token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.client = client
        self.timeout = timeout
        self.endpoint = endpoint
        self.auth_token = auth_token
        self.state = WidgetState.IDLE
        self.messages: list[ChatMessage] = [ChatMessage(content=GREETING, sender="bot")]

    @property
    def is_open(self) -> bool:
        return self.state is WidgetState.OPEN

    def open(self) -> None:
        self.state = WidgetState.OPEN

    def minimize(self) -> None:
        self.state = WidgetState.IDLE

    @staticmethod
    def _headers(request: QueryRequest) -> dict[str, str]:
        if not request.auth_token:
            return {}
        return {"Authorization": f"Bearer {request.auth_token}"}

    async def _post(self, request: QueryRequest) -> httpx.Response:
        payload = {"query": request.query}
        if self.client is not None:
            return await self.client.post(self.endpoint, json=payload, headers=self._headers(request))
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=self._headers(request))

    async def _ask(self, request: QueryRequest) -> str:
        try:
            response = await self._post(request)
            response.raise_for_status()
            reply = response.json().get("reply")
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, AttributeError) as exc:
            logger.error("Query request failed: %s", exc)
            return FALLBACK_MESSAGE
        if not isinstance(reply, str):
            logger.error("Query response has no reply")
            return FALLBACK_MESSAGE
        return reply

    async def send_message(self, text: str) -> ChatMessage | None:
        """Post ``text`` and append the answer. Blank input is ignored."""
        if not self.is_open or not text.strip():
            return None

        self.messages.append(ChatMessage(content=text, sender="user"))
        reply = await self._ask(QueryRequest(query=text, auth_token=self.auth_token))
        message = ChatMessage(content=reply, sender="bot")
        self.messages.append(message)
        return message
