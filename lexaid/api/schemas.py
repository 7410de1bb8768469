"""Pydantic models for the API layer.

Defines request/response schemas for all endpoints, plus the transcript
message record shared with the core.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class MessageRecord(BaseModel):
    """Single message in a conversation transcript. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""
    session_id: str = Field(..., min_length=1, description="Client session identifier")
    message: str = Field(..., min_length=1, max_length=4000, description="User question")
    document_text: str | None = Field(None, description="Optional uploaded document used as context")


class ChatResponse(BaseModel):
    """Outgoing chat reply."""
    session_id: str
    text: str
    ok: bool = True
    discarded: bool = False
    latency_ms: int


class HistoryResponse(BaseModel):
    """Full transcript for a session."""
    session_id: str
    messages: list[MessageRecord]


class DocumentRequest(BaseModel):
    """Document text for analysis or risk assessment."""
    document_text: str = Field(..., description="Plain text of the legal document")


class GenerateRequest(BaseModel):
    """Form values for document generation."""
    document_type: Literal["nda", "employment", "service", "custom"] = "nda"
    fields: dict[str, str] = Field(default_factory=dict)


class ResearchRequest(BaseModel):
    """Legal precedent research query."""
    query: str
    jurisdiction: str = "india"
    state: str = ""
    timeframe: str = "all"


class Notification(BaseModel):
    """Toast-style message for the client."""
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class RiskScoreModel(BaseModel):
    """Parsed risk score. `parsed` is False when the response carried no score."""
    value: int | None = None
    parsed: bool = False


class WorkflowResponse(BaseModel):
    """Single-result response from a document workflow."""
    text: str
    filename: str
    notification: Notification
    risk_score: RiskScoreModel | None = None
    risk_level: str | None = None
    latency_ms: int


class ExtractResponse(BaseModel):
    """Text pulled out of an uploaded file."""
    filename: str
    text: str


class ExportRequest(BaseModel):
    """Text blob to be returned as a file download."""
    content: str
    filename: str = Field("document.txt", min_length=1, max_length=120)
