import asyncio
from uuid import uuid4

from loguru import logger

from knowledge_base.core.errors import ValidationError
from knowledge_base.core.metrics import (
	INGEST_CHUNKS,
	INGEST_FAILURES,
	INGEST_FILES,
	observe,
)
from knowledge_base.core.schemas import (
	ChunkMetadata,
	DocumentChunk,
	ProcessResult,
	UploadMetadata,
)
from knowledge_base.core.store.document_store import DocumentStore
from knowledge_base.core.timestamps import now_utc

from .chunker import MAX_CHUNK_SIZE, split_text
from .embedder import Embedder
from .parser import extract_text


def build_chunks(
	file_id: str,
	texts: list[str],
	vectors: list[list[float]],
	filename: str,
	content_type: str,
	size_bytes: int,
	upload: UploadMetadata,
) -> list[DocumentChunk]:
	"""One DocumentChunk per text, all sharing one upload timestamp."""
	if len(texts) != len(vectors):
		raise ValidationError(
			f"Got {len(vectors)} embeddings for {len(texts)} chunks"
		)
	timestamp = now_utc()
	total = len(texts)
	return [
		DocumentChunk(
			file_id=file_id,
			content=text,
			metadata=ChunkMetadata(
				file_name=filename,
				file_type=content_type,
				file_size=size_bytes,
				description=upload.description,
				type=upload.type or content_type,
				chunk_index=idx,
				total_chunks=total,
				timestamp=timestamp,
			),
			embedding=vec,
		)
		for idx, (text, vec) in enumerate(zip(texts, vectors))
	]


async def process_and_store(
	data: bytes,
	filename: str | None,
	content_type: str | None,
	upload: UploadMetadata,
	store: DocumentStore,
	embedder: Embedder,
	max_chunk_size: int = MAX_CHUNK_SIZE,
) -> ProcessResult:
	"""
	Full ingestion of one uploaded file:
	- Extract plain text (PDF / Word / text).
	- Split into paragraph-respecting chunks.
	- Embed the chunks sequentially.
	- Insert them into the vector store under one file id.
	A failure part-way through the insert is not rolled back.
	"""
	INGEST_FILES.inc()
	if not data:
		INGEST_FAILURES.inc()
		raise ValidationError("Empty file")

	filename = filename or "unnamed"
	content_type = content_type or ""
	file_id = upload.file_id or uuid4().hex

	try:
		with observe("extract"):
			text = await asyncio.to_thread(extract_text, data, filename, content_type)

		with observe("chunk"):
			texts = split_text(text, max_chunk_size)
		if not texts:
			raise ValidationError(f"No text chunks produced for {filename}")
		logger.debug(f"Chunked {filename} into {len(texts)} chunks (file_id={file_id})")

		vectors = await embedder.embed_batch(texts)
		chunks = build_chunks(
			file_id,
			texts,
			vectors,
			filename=filename,
			content_type=content_type,
			size_bytes=len(data),
			upload=upload,
		)
		summary = await store.insert(chunks)
	except Exception:
		INGEST_FAILURES.inc()
		raise

	INGEST_CHUNKS.inc(len(chunks))
	logger.info(
		f"Stored {filename} as file_id={file_id}: "
		f"{len(chunks)} chunks, {summary.insert_count} rows inserted"
	)
	return ProcessResult(
		file_id=file_id,
		chunks_count=len(chunks),
		insert_count=summary.insert_count,
	)
