import json
from typing import Any, AsyncIterator, Iterable, NoReturn

import httpx
from loguru import logger

from knowledge_base.core.errors import (
	ChatServiceError,
	ModelRequestError,
	ModelUnavailableError,
)
from knowledge_base.settings import Settings

from .retrying import service_retrying, short_err


async def collect_stream(lines: AsyncIterator[str]) -> str:
	"""
	Reassemble a streamed `/api/chat` reply.

	Ollama sends one JSON object per line, each carrying a `message.content`
	fragment; the last one has `done: true`. Fragments are concatenated in
	arrival order.
	"""
	parts: list[str] = []
	async for line in lines:
		if not line.strip():
			continue
		try:
			obj = json.loads(line)
		except json.JSONDecodeError as e:
			raise ChatServiceError(f"Malformed chat stream line: {line[:200]}") from e
		if not isinstance(obj, dict):
			raise ChatServiceError(f"Unexpected chat stream line: {line[:200]}")

		if obj.get("error"):
			raise ChatServiceError(f"Chat model error: {obj['error']}")

		fragment = (obj.get("message") or {}).get("content")
		if fragment:
			parts.append(fragment)

		if obj.get("done"):
			return "".join(parts)

	raise ChatServiceError("Chat stream ended before the model signalled completion")


def _raise_for_status_error(path: str, e: httpx.HTTPStatusError) -> NoReturn:
	status = e.response.status_code
	if status >= 500:
		raise ModelUnavailableError(f"Ollama unavailable ({path}): HTTP {status}") from e
	raise ModelRequestError(f"Ollama rejected {path}: HTTP {status}") from e


class OllamaClient:
	"""Async client for the local Ollama runtime (embeddings, chat, model list)."""

	def __init__(
		self,
		url: str,
		timeout: float = 60.0,
		retries: int = 3,
		retry_delay: float = 1.0,
		transport: httpx.AsyncBaseTransport | None = None,
	):
		self.base_url = url.rstrip("/")
		self.retries = retries
		self.retry_delay = retry_delay
		self._http = httpx.AsyncClient(
			base_url=self.base_url, timeout=timeout, transport=transport
		)

	@classmethod
	def from_settings(cls, sets: Settings) -> "OllamaClient":
		return cls(
			url=sets.OLLAMA_URL,
			timeout=sets.SERVICE_TIMEOUT,
			retries=sets.SERVICE_RETRIES,
			retry_delay=sets.SERVICE_RETRY_DELAY,
		)

	async def close(self) -> None:
		await self._http.aclose()

	async def _request(
		self, method: str, path: str, payload: dict[str, Any] | None = None
	) -> Any:
		try:
			async for attempt in service_retrying(self.retries, self.retry_delay):
				with attempt:
					resp = await self._http.request(method, path, json=payload)
					resp.raise_for_status()
		except httpx.HTTPStatusError as e:
			_raise_for_status_error(path, e)
		except httpx.TransportError as e:
			msg = short_err(path, e)
			logger.error(f"Ollama request error: {msg}")
			raise ModelUnavailableError(f"Ollama unavailable: {msg}") from e
		try:
			return resp.json()
		except ValueError as e:
			raise ModelRequestError(
				f"Ollama {path} returned a non-JSON body: {resp.text[:200]}"
			) from e

	async def embeddings(self, model: str, prompt: str) -> dict[str, Any]:
		return await self._request(
			"POST", "/api/embeddings", {"model": model, "prompt": prompt}
		)

	async def chat(self, messages: Iterable[dict[str, str]], model: str) -> str:
		payload = {"model": model, "messages": list(messages), "stream": True}
		try:
			async for attempt in service_retrying(self.retries, self.retry_delay):
				with attempt:
					async with self._http.stream("POST", "/api/chat", json=payload) as resp:
						resp.raise_for_status()
						return await collect_stream(resp.aiter_lines())
		except httpx.HTTPStatusError as e:
			_raise_for_status_error("/api/chat", e)
		except httpx.TransportError as e:
			msg = short_err("chat", e)
			logger.error(f"Ollama chat error: {msg}")
			raise ModelUnavailableError(f"Ollama unavailable: {msg}") from e
		raise ChatServiceError("Chat request produced no reply")

	async def list_models(self) -> list[dict[str, Any]]:
		data = await self._request("GET", "/api/tags")
		if not isinstance(data, dict):
			raise ModelRequestError("Ollama /api/tags returned no model list")
		return list(data.get("models") or [])

	async def ping(self) -> bool:
		try:
			await self._request("GET", "/api/tags")
			return True
		except (ModelUnavailableError, ModelRequestError):
			return False
