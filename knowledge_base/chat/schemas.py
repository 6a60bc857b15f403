from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from knowledge_base.core.schemas import CamelModel
from knowledge_base.core.timestamps import now_utc


class ChatMessage(BaseModel):
	role: Literal["user", "assistant", "system"]
	content: str
	timestamp: datetime = Field(default_factory=now_utc)


class ChatRequest(CamelModel):
	message: str = Field(..., description="User question")
	model: Optional[str] = Field(None, description="Chat model; server default if empty")
	use_knowledge_base: bool = True
	file_ids: list[str] = Field(
		default_factory=list, description="Restrict retrieval to these documents"
	)
	top_k: Optional[int] = Field(None, ge=1, le=50)
	history: list[ChatMessage] = Field(default_factory=list)


class Reference(CamelModel):
	file_id: str
	name: str
	score: float


class ChatResponse(CamelModel):
	answer: ChatMessage
	system_message: ChatMessage | None = None
	references: list[Reference] = Field(default_factory=list)
	grounded: bool = False


class ModelInfo(BaseModel):
	name: str
	size: int | None = None
	modified_at: str | None = None
