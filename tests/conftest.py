"""
Pytest configuration for the knowledge base test suite.

Milvus and Ollama are never contacted: `FakeMilvus` answers the REST calls through
`httpx.MockTransport`, and the in-memory fakes below stand in for the adapters
where a test only cares about the layer above them.
"""
import json
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from knowledge_base.core.connectors.milvus import MilvusClient
from knowledge_base.core.retrieval import PromptResult
from knowledge_base.core.schemas import (
	ChunkMetadata,
	InsertSummary,
	LogicalDocument,
	SearchResult,
)
from knowledge_base.core.store.document_store import DocumentStore

DIM = 4


class FakeMilvus:
	"""
	Request handler for httpx.MockTransport mimicking the Milvus v2 REST API.

	Collections are tracked so create/has behave; every other endpoint answers
	with whatever is registered in `responses` (a value, or a callable taking
	the request body).
	"""

	def __init__(self, dim: int = DIM):
		self.dim = dim
		self.collections: dict[str, int] = {}
		self.requests: list[tuple[str, dict[str, Any]]] = []
		self.responses: dict[str, Any] = {}

	def calls(self, path: str) -> list[dict[str, Any]]:
		return [body for p, body in self.requests if p == path]

	@property
	def paths(self) -> list[str]:
		return [p for p, _ in self.requests]

	def _default(self, path: str, body: dict[str, Any]) -> Any:
		name = body.get("collectionName")
		if path == "collections/has":
			return {"has": name in self.collections}
		if path == "collections/create":
			fields = body["schema"]["fields"]
			vec = next(f for f in fields if f["dataType"] == "FloatVector")
			self.collections[name] = vec["elementTypeParams"]["dim"]
			return {}
		if path == "collections/describe":
			dim = self.collections.get(name, self.dim)
			return {
				"collectionName": name,
				"fields": [
					{"name": "id", "type": "Int64", "primaryKey": True},
					{
						"name": "embedding",
						"type": "FloatVector",
						"params": [{"key": "dim", "value": str(dim)}],
					},
				],
			}
		if path == "collections/list":
			return list(self.collections)
		if path == "entities/insert":
			n = len(body["data"])
			return {"insertCount": n, "insertIds": list(range(1, n + 1))}
		if path in ("entities/query", "entities/search"):
			return []
		return {}

	def __call__(self, request: httpx.Request) -> httpx.Response:
		path = request.url.path.removeprefix("/v2/vectordb/")
		body = json.loads(request.content or b"{}")
		self.requests.append((path, body))

		if path in self.responses:
			reply = self.responses[path]
			if callable(reply):
				reply = reply(body)
		else:
			reply = self._default(path, body)

		if isinstance(reply, httpx.Response):
			return reply
		return httpx.Response(200, json={"code": 0, "data": reply})


@pytest.fixture
def fake_milvus() -> FakeMilvus:
	return FakeMilvus()


@pytest.fixture
async def milvus_client(fake_milvus):
	client = MilvusClient(
		"http://milvus.test",
		retries=2,
		retry_delay=0,
		transport=httpx.MockTransport(fake_milvus),
	)
	yield client
	await client.close()


@pytest.fixture
def store(milvus_client) -> DocumentStore:
	return DocumentStore(milvus_client, collection_name="docs", dim=DIM)


def make_metadata(**overrides: Any) -> ChunkMetadata:
	values: dict[str, Any] = {
		"file_name": "notes.txt",
		"file_type": "text/plain",
		"file_size": 10,
		"description": "",
		"type": "note",
		"chunk_index": 0,
		"total_chunks": 1,
		"timestamp": datetime(2024, 1, 1, tzinfo=timezone.utc),
	}
	values.update(overrides)
	return ChunkMetadata(**values)


def make_result(file_id: str, content: str, score: float, **meta: Any) -> SearchResult:
	return SearchResult(
		id=abs(hash((file_id, content))) % 10_000,
		score=score,
		file_id=file_id,
		content=content,
		metadata=make_metadata(**meta),
	)


class FakeEmbedder:
	"""Deterministic vectors; optionally fails on a given text."""

	def __init__(self, dim: int = DIM, fail_on: str | None = None):
		self.dim = dim
		self.fail_on = fail_on
		self.seen: list[str] = []

	async def embed(self, text: str) -> list[float]:
		from knowledge_base.core.errors import EmbeddingServiceError

		self.seen.append(text)
		if self.fail_on is not None and text == self.fail_on:
			raise EmbeddingServiceError("Embedding response has no 'embedding' vector")
		return [float(len(text) % 7 + i) for i in range(self.dim)]

	async def embed_batch(self, texts: list[str]) -> list[list[float]]:
		return [await self.embed(t) for t in texts]


class FakeStore:
	"""Records calls; search/list answers come from the attributes below."""

	collection_name = "docs"

	def __init__(self):
		self.inserted: list = []
		self.searches: list[tuple[list[float], int, list[str] | None]] = []
		self.deleted: list[str] = []
		self.cleared = 0
		self.search_results: list[SearchResult] = []
		self.search_error: Exception | None = None
		self.recent: list[LogicalDocument] = []

	async def ensure_collection(self) -> bool:
		return False

	async def insert(self, chunks) -> InsertSummary:
		from knowledge_base.core.errors import ValidationError

		if not chunks:
			raise ValidationError("The documents should be a non-empty list")
		self.inserted.extend(chunks)
		return InsertSummary(insert_count=len(chunks), ids=list(range(len(chunks))))

	async def search(self, query_vector, top_k=5, file_ids=None):
		self.searches.append(
			(list(query_vector), top_k, list(file_ids) if file_ids else None)
		)
		if self.search_error is not None:
			raise self.search_error
		return self.search_results[:top_k]

	async def delete_by_file_id(self, file_id: str) -> bool:
		self.deleted.append(file_id)
		return True

	async def clear_all(self) -> bool:
		self.cleared += 1
		return True

	async def list_latest_per_document(self, limit: int = 10):
		return self.recent[:limit]


class FakePromptBuilder:
	def __init__(
		self,
		result: PromptResult | None = None,
		error: Exception | None = None,
	):
		self.result = result
		self.error = error
		self.calls: list[tuple[str, list[str] | None, int]] = []

	async def build_prompt(self, question, scope=None, top_k=3) -> PromptResult:
		self.calls.append((question, list(scope) if scope else None, top_k))
		if self.error is not None:
			raise self.error
		assert self.result is not None
		return self.result


class FakeChat:
	def __init__(self, reply: str = "answer", models: list[dict] | None = None):
		self.reply = reply
		self.models = models or []
		self.calls: list[tuple[list[dict[str, str]], str]] = []

	async def chat(self, messages, model: str) -> str:
		self.calls.append((list(messages), model))
		return self.reply

	async def list_models(self) -> list[dict]:
		return self.models

	async def ping(self) -> bool:
		return True


Handler = Callable[[httpx.Request], httpx.Response]
