from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from knowledge_base.core.timestamps import ensure_aware_utc, now_utc


class CamelModel(BaseModel):
	# camelCase on the wire, snake_case in code
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChunkMetadata(CamelModel):
	"""Typed form of the `metadata` column; stored as a JSON string."""

	model_config = ConfigDict(
		alias_generator=to_camel, populate_by_name=True, extra="ignore"
	)

	file_name: str = ""
	file_type: str = ""
	file_size: int = 0
	description: str = ""
	type: str = ""
	chunk_index: int = 0
	total_chunks: int = 1
	timestamp: datetime = Field(default_factory=now_utc)

	@field_validator("timestamp", mode="after")
	@classmethod
	def _utc(cls, dt: datetime) -> datetime:
		return ensure_aware_utc(dt)


class DocumentChunk(CamelModel):
	file_id: str
	content: str
	metadata: ChunkMetadata
	embedding: list[float]


class StoredChunk(BaseModel):
	"""A row read back from the collection, without its vector."""

	id: int | str
	file_id: str
	metadata: ChunkMetadata


class InsertSummary(CamelModel):
	insert_count: int
	ids: list[int | str] = Field(default_factory=list)


class SearchResult(CamelModel):
	id: int | str
	score: float
	file_id: str
	content: str
	metadata: ChunkMetadata | None = None


class LogicalDocument(CamelModel):
	uid: str
	name: str
	type: str
	description: str
	status: Literal["done"] = "done"
	upload_time: datetime


class UploadMetadata(CamelModel):
	file_id: str | None = None
	type: str = ""
	description: str = ""


class ProcessResult(CamelModel):
	success: bool = True
	file_id: str
	chunks_count: int
	insert_count: int
