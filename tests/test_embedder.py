"""Tests for knowledge_base/core/ingestion/embedder.py"""
import asyncio
import json

import httpx
import pytest

from knowledge_base.core.connectors.ollama import OllamaClient
from knowledge_base.core.errors import (
	EmbeddingServiceError,
	EmbeddingUnavailableError,
	ServiceUnavailableError,
)
from knowledge_base.core.ingestion.embedder import Embedder


def embedder_for(handler, retries: int = 2) -> Embedder:
	client = OllamaClient(
		"http://ollama.test",
		retries=retries,
		retry_delay=0,
		transport=httpx.MockTransport(handler),
	)
	return Embedder(client, model_name="mxbai-embed-large")


class TestEmbed:
	async def test_returns_vector(self):
		def handler(request):
			body = json.loads(request.content)
			assert request.url.path == "/api/embeddings"
			assert body == {"model": "mxbai-embed-large", "prompt": "hello"}
			return httpx.Response(200, json={"embedding": [1, 2.5, 3]})

		emb = embedder_for(handler)
		assert await emb.embed("hello") == [1.0, 2.5, 3.0]

	async def test_missing_field(self):
		emb = embedder_for(lambda r: httpx.Response(200, json={"vector": [1]}))
		with pytest.raises(EmbeddingServiceError):
			await emb.embed("hello")

	async def test_non_numeric(self):
		emb = embedder_for(lambda r: httpx.Response(200, json={"embedding": ["x"]}))
		with pytest.raises(EmbeddingServiceError):
			await emb.embed("hello")

	async def test_unreachable(self):
		def handler(request):
			raise httpx.ConnectError("refused", request=request)

		with pytest.raises(EmbeddingUnavailableError) as exc:
			await embedder_for(handler).embed("hello")
		assert isinstance(exc.value, EmbeddingServiceError)
		assert isinstance(exc.value, ServiceUnavailableError)

	async def test_rejected_model(self):
		emb = embedder_for(lambda r: httpx.Response(404, json={"error": "no model"}))
		with pytest.raises(EmbeddingServiceError) as exc:
			await emb.embed("hello")
		assert not isinstance(exc.value, EmbeddingUnavailableError)

	async def test_non_json_reply(self):
		emb = embedder_for(lambda r: httpx.Response(200, text="<html>proxy</html>"))
		with pytest.raises(EmbeddingServiceError) as exc:
			await emb.embed("x")
		assert "non-JSON" in exc.value.message
		assert not isinstance(exc.value, EmbeddingUnavailableError)


class TestEmbedBatch:
	async def test_order_preserved_with_uneven_latency(self):
		in_flight = 0
		peak = 0

		async def handler(request):
			nonlocal in_flight, peak
			prompt = json.loads(request.content)["prompt"]
			in_flight += 1
			peak = max(peak, in_flight)
			# earlier texts answer slower
			await asyncio.sleep(0.01 * (3 - int(prompt)))
			in_flight -= 1
			return httpx.Response(200, json={"embedding": [float(prompt)]})

		vectors = await embedder_for(handler).embed_batch(["0", "1", "2"])
		assert vectors == [[0.0], [1.0], [2.0]]
		assert peak == 1

	async def test_failure_aborts_batch(self):
		prompts = []

		def handler(request):
			prompt = json.loads(request.content)["prompt"]
			prompts.append(prompt)
			if prompt == "bad":
				return httpx.Response(200, json={})
			return httpx.Response(200, json={"embedding": [0.1]})

		with pytest.raises(EmbeddingServiceError):
			await embedder_for(handler).embed_batch(["ok", "bad", "never"])
		assert prompts == ["ok", "bad"]

	async def test_empty_batch(self):
		emb = embedder_for(lambda r: httpx.Response(500))
		assert await emb.embed_batch([]) == []
