import numbers
from typing import Any, Iterable, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from knowledge_base.core.connectors.milvus import MilvusClient
from knowledge_base.core.errors import DimensionMismatchError, ValidationError
from knowledge_base.core.metrics import (
	SEARCH_ERRORS,
	SEARCH_REQUESTS,
	STORE_DELETES,
	STORE_INSERT_BATCHES,
	STORE_INSERT_ROWS,
	observe,
)
from knowledge_base.core.schemas import (
	ChunkMetadata,
	DocumentChunk,
	InsertSummary,
	LogicalDocument,
	SearchResult,
	StoredChunk,
)
from knowledge_base.settings import Settings

from .filters import All, Equals, Filter, In, to_milvus_expr
from .recency import latest_per_file, to_logical_document

VECTOR_FIELD = "embedding"
FILE_ID_MAX = 100
CONTENT_MAX = 65535
METADATA_MAX = 1024

# Milvus caps offset + limit of a single query window
QUERY_WINDOW = 16384
QUERY_PAGE_SIZE = 1000


def collection_schema(dim: int) -> dict[str, Any]:
	return {
		"autoId": True,
		"enableDynamicField": False,
		"fields": [
			{"fieldName": "id", "dataType": "Int64", "isPrimary": True},
			{
				"fieldName": "file_id",
				"dataType": "VarChar",
				"elementTypeParams": {"max_length": FILE_ID_MAX},
			},
			{
				"fieldName": "content",
				"dataType": "VarChar",
				"elementTypeParams": {"max_length": CONTENT_MAX},
			},
			{
				"fieldName": "metadata",
				"dataType": "VarChar",
				"elementTypeParams": {"max_length": METADATA_MAX},
			},
			{
				"fieldName": VECTOR_FIELD,
				"dataType": "FloatVector",
				"elementTypeParams": {"dim": dim},
			},
		],
	}


def _dim_from_description(desc: dict[str, Any]) -> int | None:
	for field in desc.get("fields") or []:
		if field.get("name") != VECTOR_FIELD:
			continue
		for p in field.get("params") or []:
			if p.get("key") == "dim":
				try:
					return int(p.get("value"))
				except (TypeError, ValueError):
					return None
	return None


def _parse_metadata(raw: Any) -> ChunkMetadata | None:
	try:
		if isinstance(raw, dict):
			return ChunkMetadata.model_validate(raw)
		return ChunkMetadata.model_validate_json(raw or "")
	except PydanticValidationError:
		logger.warning(f"Unreadable chunk metadata skipped: {str(raw)[:120]}")
		return None


def _check_vector(vector: Sequence[Any], what: str) -> None:
	if not isinstance(vector, (list, tuple)) or not vector:
		raise ValidationError(f"{what} must be a non-empty sequence of numbers")
	if not all(
		isinstance(x, numbers.Real) and not isinstance(x, bool) for x in vector
	):
		raise ValidationError(f"{what} must contain only numbers")


class DocumentStore:
	"""
	Chunk storage over one fixed Milvus collection.

	Fields: `id` (auto primary key), `file_id`, `content`, `metadata` (JSON
	string) and `embedding`, indexed with HNSW / cosine. Metadata is only
	(de)serialised here; callers work with `ChunkMetadata`.
	"""

	def __init__(
		self,
		client: MilvusClient,
		collection_name: str = "document_embeddings",
		dim: int = 1024,
		hnsw_m: int = 8,
		hnsw_ef_construction: int = 64,
		search_ef: int = 64,
	):
		self.client = client
		self.collection_name = collection_name
		self.dim = dim
		self.hnsw_m = hnsw_m
		self.hnsw_ef_construction = hnsw_ef_construction
		self.search_ef = search_ef

	@classmethod
	def from_settings(cls, client: MilvusClient, sets: Settings) -> "DocumentStore":
		return cls(
			client,
			collection_name=sets.MILVUS_COLLECTION,
			dim=sets.EMBEDDING_DIM,
			hnsw_m=sets.HNSW_M,
			hnsw_ef_construction=sets.HNSW_EF_CONSTRUCTION,
			search_ef=sets.SEARCH_EF,
		)

	def _index_params(self) -> list[dict[str, Any]]:
		return [
			{
				"fieldName": VECTOR_FIELD,
				"indexName": f"{VECTOR_FIELD}_hnsw",
				"metricType": "COSINE",
				"params": {
					"index_type": "HNSW",
					"M": self.hnsw_m,
					"efConstruction": self.hnsw_ef_construction,
				},
			}
		]

	async def ensure_collection(self) -> bool:
		"""
		Create the collection and its index unless it exists. Returns True when
		it was created. An existing collection keeps its own dimension, which
		then replaces the configured one.
		"""
		name = self.collection_name
		if await self.client.has_collection(name):
			desc = await self.client.describe_collection(name)
			existing = _dim_from_description(desc)
			if existing and existing != self.dim:
				logger.warning(
					f"Collection '{name}' has dimension {existing}, "
					f"configured {self.dim}; using {existing}"
				)
				self.dim = existing
			logger.debug(f"Collection '{name}' already exists")
			return False

		await self.client.create_collection(name, collection_schema(self.dim))
		await self.client.create_index(name, self._index_params())
		logger.info(f"Created collection '{name}' (dim={self.dim}, HNSW/COSINE)")
		return True

	async def _load(self) -> None:
		await self.client.load_collection(self.collection_name)

	def _validate_chunk(self, i: int, chunk: DocumentChunk) -> dict[str, Any]:
		if not chunk.file_id or not chunk.content or not chunk.embedding:
			raise ValidationError(
				f"Document {i} must contain fileId, content, metadata and embedding"
			)
		if len(chunk.file_id) > FILE_ID_MAX:
			raise ValidationError(
				f"Document {i}: fileId longer than {FILE_ID_MAX} characters"
			)
		if len(chunk.content.encode("utf-8")) > CONTENT_MAX:
			raise ValidationError(f"Document {i}: content exceeds {CONTENT_MAX} bytes")
		_check_vector(chunk.embedding, f"Document {i} embedding")
		if len(chunk.embedding) != self.dim:
			raise DimensionMismatchError(
				self.dim, len(chunk.embedding), what=f"Document {i} embedding"
			)

		metadata = chunk.metadata.model_dump_json(by_alias=True)
		if len(metadata) > METADATA_MAX:
			raise ValidationError(
				f"Document {i}: serialised metadata exceeds {METADATA_MAX} characters"
			)
		return {
			"file_id": chunk.file_id,
			"content": chunk.content,
			"metadata": metadata,
			VECTOR_FIELD: [float(x) for x in chunk.embedding],
		}

	async def insert(self, chunks: Sequence[DocumentChunk]) -> InsertSummary:
		if not chunks:
			raise ValidationError("The documents should be a non-empty list")

		# validate everything before the first write
		rows = [self._validate_chunk(i, c) for i, c in enumerate(chunks)]

		await self._load()
		STORE_INSERT_BATCHES.inc()
		with observe("milvus_insert"):
			data = await self.client.insert(self.collection_name, rows)

		count = int(data.get("insertCount", len(rows)))
		STORE_INSERT_ROWS.inc(count)
		logger.debug(f"Inserted {count} chunks into '{self.collection_name}'")
		return InsertSummary(insert_count=count, ids=list(data.get("insertIds") or []))

	async def search(
		self,
		query_vector: Sequence[float],
		top_k: int = 5,
		file_ids: Iterable[str] | None = None,
	) -> list[SearchResult]:
		_check_vector(query_vector, "Query vector")
		if len(query_vector) != self.dim:
			raise DimensionMismatchError(self.dim, len(query_vector))
		if top_k < 1:
			raise ValidationError("top_k must be at least 1")

		scope = list(file_ids or [])
		expr = to_milvus_expr(In.of("file_id", scope)) if scope else ""
		logger.debug(f"Searching top_k={top_k} filter='{expr}'")

		SEARCH_REQUESTS.inc()
		try:
			await self._load()
			with observe("milvus_search"):
				hits = await self.client.search(
					self.collection_name,
					vector=[float(x) for x in query_vector],
					anns_field=VECTOR_FIELD,
					limit=top_k,
					output_fields=["file_id", "content", "metadata"],
					search_params={
						"metricType": "COSINE",
						"params": {"ef": max(self.search_ef, top_k)},
					},
					filter=expr,
				)
		except Exception:
			SEARCH_ERRORS.inc()
			raise

		results = [
			SearchResult(
				id=h.get("id"),
				score=float(h.get("distance", h.get("score", 0.0))),
				file_id=h.get("file_id") or "",
				content=h.get("content") or "",
				metadata=_parse_metadata(h.get("metadata")),
			)
			for h in hits
			if isinstance(h, dict)
		]
		results.sort(key=lambda r: r.score, reverse=True)
		return results[:top_k]

	async def _delete(self, f: Filter) -> None:
		expr = to_milvus_expr(f)
		await self._load()
		STORE_DELETES.inc()
		await self.client.delete(self.collection_name, expr)
		logger.info(f"Deleted rows from '{self.collection_name}' where {expr}")

	async def delete_by_file_id(self, file_id: str) -> bool:
		if not file_id:
			raise ValidationError("file_id is required")
		await self._delete(Equals("file_id", file_id))
		return True

	async def clear_all(self) -> bool:
		await self._delete(All())
		return True

	async def _fetch_all(self) -> list[StoredChunk]:
		chunks: list[StoredChunk] = []
		offset = 0
		with observe("milvus_query"):
			while offset < QUERY_WINDOW:
				limit = min(QUERY_PAGE_SIZE, QUERY_WINDOW - offset)
				rows = await self.client.query(
					self.collection_name,
					filter=to_milvus_expr(All()),
					output_fields=["id", "file_id", "metadata"],
					limit=limit,
					offset=offset,
				)
				for row in rows:
					meta = _parse_metadata(row.get("metadata"))
					if meta is None or not row.get("file_id"):
						continue
					chunks.append(
						StoredChunk(id=row.get("id"), file_id=row["file_id"], metadata=meta)
					)
				if len(rows) < limit:
					break
				offset += limit
		if offset >= QUERY_WINDOW:
			# the window cannot be read past, so more rows are possible, not certain
			logger.warning(
				f"Listing filled the {QUERY_WINDOW}-row query window of "
				f"'{self.collection_name}'; rows past it, if any, were not read"
			)
		return chunks

	async def list_latest_per_document(self, limit: int = 10) -> list[LogicalDocument]:
		await self._load()
		chunks = await self._fetch_all()
		latest = latest_per_file(chunks, limit)
		logger.debug(
			f"Listing: {len(chunks)} chunks, {len(latest)} documents returned"
		)
		return [to_logical_document(c) for c in latest]
