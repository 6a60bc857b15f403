import asyncio
from typing import List

from fastapi import UploadFile
from loguru import logger

from knowledge_base.core.errors import ValidationError
from knowledge_base.core.ingestion.embedder import Embedder
from knowledge_base.core.ingestion.parser import extract_text
from knowledge_base.core.ingestion.pipeline import process_and_store
from knowledge_base.core.store.document_store import DocumentStore
from knowledge_base.documents.schemas import (
	CollectionResponse,
	DeleteResponse,
	DocumentChunk,
	InsertSummary,
	LogicalDocument,
	ProcessResult,
	SearchResult,
	UploadMetadata,
)
from knowledge_base.settings import Settings


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
	data = await file.read()
	if not data:
		raise ValidationError(f"File {file.filename} is empty")
	if len(data) > max_bytes:
		raise ValidationError(
			f"File {file.filename} exceeds the {max_bytes // (1024 * 1024)} MB limit"
		)
	return data


async def ensure_collection(store: DocumentStore) -> CollectionResponse:
	created = await store.ensure_collection()
	if created:
		return CollectionResponse(created=True, message="Collection created")
	return CollectionResponse(created=False, message="Collection already exists")


async def upload_document(
	file: UploadFile,
	upload: UploadMetadata,
	store: DocumentStore,
	embedder: Embedder,
	settings: Settings,
) -> ProcessResult:
	fname = file.filename or "unnamed"
	logger.debug(f"Processing upload: {fname}")
	data = await _read_upload(file, settings.MAX_UPLOAD_MB * 1024 * 1024)
	return await process_and_store(
		data,
		filename=fname,
		content_type=file.content_type,
		upload=upload,
		store=store,
		embedder=embedder,
		max_chunk_size=settings.MAX_CHUNK_SIZE,
	)


async def insert_documents(
	documents: List[DocumentChunk], store: DocumentStore
) -> InsertSummary:
	summary = await store.insert(documents)
	logger.info(f"Inserted {summary.insert_count} pre-embedded chunks")
	return summary


async def list_recent(store: DocumentStore, limit: int) -> List[LogicalDocument]:
	return await store.list_latest_per_document(limit)


async def delete_document(store: DocumentStore, file_id: str) -> DeleteResponse:
	ok = await store.delete_by_file_id(file_id)
	return DeleteResponse(success=ok, file_id=file_id)


async def clear_documents(store: DocumentStore) -> DeleteResponse:
	ok = await store.clear_all()
	logger.warning(f"Cleared every document from '{store.collection_name}'")
	return DeleteResponse(success=ok)


async def semantic_search(
	query: str,
	store: DocumentStore,
	embedder: Embedder,
	top_k: int = 5,
	file_ids: List[str] | None = None,
) -> List[SearchResult]:
	if not query.strip():
		raise ValidationError("Query must not be empty")

	qvec = await embedder.embed(query)
	results = await store.search(qvec, top_k, file_ids)
	logger.debug(f"Search returned {len(results)} results for top_k={top_k}")
	return results


async def extract_only(file: UploadFile, settings: Settings) -> str:
	data = await _read_upload(file, settings.MAX_UPLOAD_MB * 1024 * 1024)
	return await asyncio.to_thread(
		extract_text, data, file.filename, file.content_type
	)
