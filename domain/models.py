from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Literal, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class QueryRequest(BaseModel):
    """What the chat widget posts to the query endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(validation_alias=AliasChoices("query", "text"))
    auth_token: str | None = None


class NormalizedRequest(BaseModel):
    """Source-agnostic view of one inbound query."""
    model_config = ConfigDict(frozen=True)

    fields: dict[str, str] = Field(default_factory=dict)
    content_type: str = ""
    source: Literal["embedded", "transport"] = "transport"
    auth_token: str | None = None

    # Some handlers read "body", others "query string"; both see the same fields.
    @property
    def body(self) -> Mapping[str, str]:
        return MappingProxyType(self.fields)

    @property
    def params(self) -> Mapping[str, str]:
        return MappingProxyType(self.fields)

    def input(self, key: str, default: str | None = None) -> str | None:
        return self.fields.get(key, default)


class QueryResponse(BaseModel):
    success: bool
    reply: str | None = None
    message: str | None = None


class ErrorKind(str, Enum):
    STARTUP = "startup"
    VALIDATION = "validation"
    HANDLER = "handler"


class PipelineError(BaseModel):
    """A failure produced anywhere between adaptation and translation."""
    kind: ErrorKind
    message: str
    exception_type: str | None = None
    location: str | None = None
    trace: list[str] = Field(default_factory=list)
    details: list[str] = Field(default_factory=list)


class ErrorPayload(BaseModel):
    success: bool = False
    message: str
    # Debug-only members
    error: str | None = None
    file: str | None = None
    type: str | None = None
    details: list[str] | None = None
    trace: list[str] | None = None


class OutboundResponse(BaseModel):
    status_code: int = 200
    headers: dict[str, str] = Field(default_factory=lambda: {"content-type": "application/json"})
    body: str = ""


class ChatMessage(BaseModel):
    """A single transcript entry shown by the chat widget."""
    content: str
    sender: Literal["user", "bot"]
    timestamp: datetime = Field(default_factory=datetime.now)


class DiagnosticCheck(BaseModel):
    name: str
    status: Literal["ok", "fail"]
    detail: str = ""


class DiagnosticSummary(BaseModel):
    all_checks_passed: bool
    total_checks: int
    passed: int
    failed: int


class DiagnosticReport(BaseModel):
    timestamp: datetime
    checks: list[DiagnosticCheck]
    summary: DiagnosticSummary


class HealthStatus(BaseModel):
    status: str = "ok"
    timestamp: datetime
    version: str
    python_version: str
    app_key_set: bool
    llm_key_set: bool
    storage_writable: bool
