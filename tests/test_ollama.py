"""Tests for knowledge_base/core/connectors/ollama.py"""
import json

import httpx
import pytest

from knowledge_base.core.connectors.ollama import OllamaClient, collect_stream
from knowledge_base.core.errors import (
	ChatServiceError,
	ModelRequestError,
	ModelUnavailableError,
)


def ndjson(*objs) -> bytes:
	return "\n".join(json.dumps(o) for o in objs).encode() + b"\n"


async def lines_of(*items):
	for item in items:
		yield item


def make_client(handler, retries: int = 2) -> OllamaClient:
	return OllamaClient(
		"http://ollama.test",
		retries=retries,
		retry_delay=0,
		transport=httpx.MockTransport(handler),
	)


class TestCollectStream:
	async def test_fragments_joined_in_order(self):
		lines = lines_of(
			json.dumps({"message": {"content": "Hel"}, "done": False}),
			"",
			json.dumps({"message": {"content": "lo"}, "done": False}),
			json.dumps({"message": {"content": ""}, "done": True}),
		)
		assert await collect_stream(lines) == "Hello"

	async def test_stops_at_done(self):
		lines = lines_of(
			json.dumps({"message": {"content": "a"}, "done": True}),
			json.dumps({"message": {"content": "ignored"}, "done": True}),
		)
		assert await collect_stream(lines) == "a"

	async def test_error_object(self):
		with pytest.raises(ChatServiceError):
			await collect_stream(lines_of(json.dumps({"error": "model not found"})))

	@pytest.mark.parametrize("line", ["{not json", "42", "[1, 2]", "\"text\"", "null"])
	async def test_malformed_line(self, line):
		with pytest.raises(ChatServiceError):
			await collect_stream(lines_of(line))

	async def test_stream_without_done(self):
		lines = lines_of(json.dumps({"message": {"content": "partial"}}))
		with pytest.raises(ChatServiceError):
			await collect_stream(lines)


class TestChat:
	async def test_streams_reply(self):
		seen = []

		def handler(request):
			seen.append(json.loads(request.content))
			body = ndjson(
				{"message": {"role": "assistant", "content": "Paris"}, "done": False},
				{"message": {"role": "assistant", "content": " it is."}, "done": True},
			)
			return httpx.Response(200, content=body)

		client = make_client(handler)
		messages = [{"role": "user", "content": "Capital of France?"}]
		assert await client.chat(messages, "llama3") == "Paris it is."
		assert seen[0] == {"model": "llama3", "messages": messages, "stream": True}
		await client.close()

	async def test_unknown_model(self):
		client = make_client(lambda r: httpx.Response(404, json={"error": "nope"}))
		with pytest.raises(ModelRequestError):
			await client.chat([{"role": "user", "content": "hi"}], "missing")
		await client.close()

	async def test_retries_then_unavailable(self):
		calls = []

		def handler(request):
			calls.append(request)
			raise httpx.ConnectError("refused", request=request)

		client = make_client(handler, retries=3)
		with pytest.raises(ModelUnavailableError):
			await client.chat([{"role": "user", "content": "hi"}], "llama3")
		assert len(calls) == 3
		await client.close()

	async def test_recovers_after_transient_failure(self):
		calls = []

		def handler(request):
			calls.append(request)
			if len(calls) == 1:
				return httpx.Response(503)
			return httpx.Response(
				200, content=ndjson({"message": {"content": "ok"}, "done": True})
			)

		client = make_client(handler)
		assert await client.chat([{"role": "user", "content": "hi"}], "llama3") == "ok"
		assert len(calls) == 2
		await client.close()


class TestModels:
	async def test_list_models(self):
		def handler(request):
			assert request.url.path == "/api/tags"
			return httpx.Response(
				200, json={"models": [{"name": "llama3:latest", "size": 42}]}
			)

		client = make_client(handler)
		assert await client.list_models() == [{"name": "llama3:latest", "size": 42}]
		assert await client.ping() is True
		await client.close()

	async def test_ping_down(self):
		def handler(request):
			raise httpx.ConnectError("refused", request=request)

		client = make_client(handler)
		assert await client.ping() is False
		await client.close()

	async def test_non_json_tags(self):
		client = make_client(lambda r: httpx.Response(200, text="<html>proxy</html>"))
		with pytest.raises(ModelRequestError):
			await client.list_models()
		assert await client.ping() is False
		await client.close()

	async def test_tags_not_an_object(self):
		client = make_client(lambda r: httpx.Response(200, json=["llama3"]))
		with pytest.raises(ModelRequestError):
			await client.list_models()
		await client.close()
