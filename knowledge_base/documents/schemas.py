from pydantic import BaseModel, Field

from knowledge_base.core.schemas import (
	CamelModel,
	ChunkMetadata,
	DocumentChunk,
	InsertSummary,
	LogicalDocument,
	ProcessResult,
	SearchResult,
	UploadMetadata,
)

__all__ = [
	"ChunkMetadata",
	"CollectionResponse",
	"DeleteResponse",
	"DocumentChunk",
	"ExtractResponse",
	"InsertRequest",
	"InsertSummary",
	"LogicalDocument",
	"ProcessResult",
	"SearchRequest",
	"SearchResult",
	"UploadMetadata",
]


class InsertRequest(CamelModel):
	documents: list[DocumentChunk]


class SearchRequest(CamelModel):
	query: str
	top_k: int = Field(5, ge=1, le=100)
	file_ids: list[str] = Field(default_factory=list)


class DeleteResponse(CamelModel):
	success: bool
	file_id: str | None = None


class CollectionResponse(CamelModel):
	created: bool
	message: str


class ExtractResponse(BaseModel):
	text: str
