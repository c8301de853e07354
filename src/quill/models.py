from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Block = dict[str, Any]


class _Request(BaseModel):
    # Editors send camelCase; snake_case is accepted too.
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    llm_provider: str
    search_enabled: bool
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


class ChatMessageModel(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""


class AIModifyRequest(_Request):
    post_id: str = Field(default="", alias="postId")
    instruction: str = ""
    current_title: str = Field(default="Untitled", alias="currentTitle")
    current_content: list[Block] = Field(default_factory=list, alias="currentContent")
    messages: list[ChatMessageModel] = Field(default_factory=list)


class AIModifyResponse(BaseModel):
    modifications: list[dict[str, Any]]
    explanation: str
    instruction: str
    plan: dict[str, Any] | None = None
    search_performed: bool = False
    used_fallback: bool = False


class AIAssistRequest(_Request):
    message: str = Field(..., min_length=1)
    post_id: str = Field(..., alias="postId", min_length=1)
    current_title: str = Field(default="", alias="currentTitle")
    current_content: list[Block] = Field(default_factory=list, alias="currentContent")
    user_id: str = Field(default="anonymous", alias="userId")
    conversation_id: str | None = Field(default=None, alias="conversationId")


class AnalyzeRequest(_Request):
    title: str = ""
    content: list[Block] = Field(default_factory=list)


class ApplyModificationsRequest(_Request):
    title: str = ""
    content: list[Block] = Field(default_factory=list)
    modifications: list[dict[str, Any]] = Field(default_factory=list)
    highlight: bool = True


class ApplyModificationsResponse(BaseModel):
    blocks: list[Block]
    title: str
    applied: list[dict[str, Any]]
    skipped: list[dict[str, Any]]
    diff: dict[str, Any]


class RestructureRequest(_Request):
    content: list[Block] = Field(default_factory=list)
    template: str


class RestructureResponse(BaseModel):
    template: str
    blocks: list[Block]
    diff: dict[str, Any]


class SaveVersionRequest(_Request):
    user_id: str | None = Field(default=None, alias="userId")
    title: str = ""
    content: list[Block] = Field(default_factory=list)
    trigger: Literal["manual", "ai", "auto"] = "manual"
    description: str | None = None


class RollbackRequest(_Request):
    user_id: str | None = Field(default=None, alias="userId")


class VersionSummary(BaseModel):
    id: str
    post_id: str
    user_id: str | None = None
    version_number: int
    title: str
    change_description: str | None = None
    trigger: str
    created_at: datetime
    content: list[Block] | None = None


class VersionHistoryResponse(BaseModel):
    post_id: str
    versions: list[VersionSummary]
