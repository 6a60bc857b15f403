from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from loguru import logger

from knowledge_base.core.errors import KnowledgeBaseError
from knowledge_base.core.ingestion.embedder import Embedder
from knowledge_base.core.store.document_store import DocumentStore
from knowledge_base.dependencies import get_embedder, get_settings, get_store
from knowledge_base.settings import Settings

from .controllers import (
	clear_documents,
	delete_document,
	ensure_collection,
	extract_only,
	insert_documents,
	list_recent,
	semantic_search,
	upload_document,
)
from .schemas import (
	CollectionResponse,
	DeleteResponse,
	ExtractResponse,
	InsertRequest,
	InsertSummary,
	LogicalDocument,
	ProcessResult,
	SearchRequest,
	SearchResult,
	UploadMetadata,
)

router = APIRouter(prefix="/api")


@router.post("/collection", response_model=CollectionResponse)
async def create_collection(store: DocumentStore = Depends(get_store)):
	return await ensure_collection(store)


@router.post("/documents/upload", response_model=ProcessResult)
async def upload(
	file: UploadFile = File(...),
	type: str = Form(""),
	description: str = Form(""),
	file_id: str | None = Form(None),
	store: DocumentStore = Depends(get_store),
	embedder: Embedder = Depends(get_embedder),
	settings: Settings = Depends(get_settings),
):
	upload_meta = UploadMetadata(
		file_id=file_id or None, type=type, description=description
	)
	try:
		return await upload_document(file, upload_meta, store, embedder, settings)
	except KnowledgeBaseError:
		raise
	except Exception as e:
		logger.exception(f"Error during ingestion for file {file.filename}")
		raise HTTPException(status_code=500, detail=str(e))


@router.post("/documents", response_model=InsertSummary)
async def insert(payload: InsertRequest, store: DocumentStore = Depends(get_store)):
	return await insert_documents(payload.documents, store)


@router.get("/documents/recent", response_model=List[LogicalDocument])
async def recent_documents(
	limit: int | None = Query(None, ge=1, le=1000),
	store: DocumentStore = Depends(get_store),
	settings: Settings = Depends(get_settings),
):
	return await list_recent(store, limit or settings.RECENT_LIMIT)


@router.delete("/documents/{file_id}", response_model=DeleteResponse)
async def delete(file_id: str, store: DocumentStore = Depends(get_store)):
	return await delete_document(store, file_id)


@router.delete("/documents", response_model=DeleteResponse)
async def clear(store: DocumentStore = Depends(get_store)):
	return await clear_documents(store)


@router.post("/search", response_model=List[SearchResult])
async def search(
	payload: SearchRequest,
	store: DocumentStore = Depends(get_store),
	embedder: Embedder = Depends(get_embedder),
):
	return await semantic_search(
		query=payload.query,
		store=store,
		embedder=embedder,
		top_k=payload.top_k,
		file_ids=payload.file_ids,
	)


@router.post("/extract", response_model=ExtractResponse)
async def extract(
	file: UploadFile = File(...),
	settings: Settings = Depends(get_settings),
):
	return ExtractResponse(text=await extract_only(file, settings))
