from typing import Any

import httpx
from loguru import logger

from knowledge_base.core.errors import StoreRequestError, StoreUnavailableError
from knowledge_base.core.metrics import STORE_ERRORS
from knowledge_base.settings import Settings

from .retrying import service_retrying, short_err


class MilvusClient:
	"""
	Thin async wrapper over the Milvus RESTful v2 API (`/v2/vectordb/...`).

	One instance is built at startup and shared; it owns a pooled
	`httpx.AsyncClient`. Every call is retried a fixed number of times with a
	fixed delay when Milvus cannot be reached, then fails with
	`StoreUnavailableError`. A reply with a non-zero `code` is a
	`StoreRequestError` and is not retried.
	"""

	def __init__(
		self,
		url: str,
		token: str = "",
		timeout: float = 60.0,
		retries: int = 3,
		retry_delay: float = 1.0,
		transport: httpx.AsyncBaseTransport | None = None,
	):
		self.cluster_endpoint = url.rstrip("/")
		self.retries = retries
		self.retry_delay = retry_delay

		headers = {
			"Content-Type": "application/json",
		}
		if token:
			headers["Authorization"] = f"Bearer {token}"

		self._http = httpx.AsyncClient(
			base_url=self.cluster_endpoint,
			headers=headers,
			timeout=timeout,
			transport=transport,
		)

	@classmethod
	def from_settings(cls, sets: Settings) -> "MilvusClient":
		return cls(
			url=sets.MILVUS_URL,
			token=sets.MILVUS_SECRET,
			timeout=sets.SERVICE_TIMEOUT,
			retries=sets.SERVICE_RETRIES,
			retry_delay=sets.SERVICE_RETRY_DELAY,
		)

	async def close(self) -> None:
		await self._http.aclose()

	async def _post(self, path: str, payload: dict[str, Any]) -> Any:
		url = f"/v2/vectordb/{path}"
		try:
			async for attempt in service_retrying(self.retries, self.retry_delay):
				with attempt:
					resp = await self._http.post(url, json=payload)
					resp.raise_for_status()
		except httpx.HTTPStatusError as e:
			STORE_ERRORS.inc()
			status = e.response.status_code
			if status >= 500:
				raise StoreUnavailableError(
					f"Milvus unavailable ({path}): HTTP {status}"
				) from e
			raise StoreRequestError(
				f"Milvus rejected {path}: HTTP {status} {e.response.text[:300]}"
			) from e
		except httpx.TransportError as e:
			STORE_ERRORS.inc()
			msg = short_err(path, e)
			logger.error(f"Milvus request error: {msg}")
			raise StoreUnavailableError(f"Milvus unavailable: {msg}") from e

		try:
			body = resp.json()
		except ValueError as e:
			STORE_ERRORS.inc()
			raise StoreRequestError(
				f"Milvus {path} returned a non-JSON body: {resp.text[:200]}"
			) from e
		if not isinstance(body, dict):
			STORE_ERRORS.inc()
			raise StoreRequestError(
				f"Milvus {path} returned {type(body).__name__}, expected an object"
			)
		code = body.get("code", 0)
		if code != 0:
			STORE_ERRORS.inc()
			raise StoreRequestError(
				f"Milvus {path} error {code}: {body.get('message', '')}", code=code
			)
		return body.get("data")

	# collections
	async def list_collections(self) -> list[str]:
		return await self._post("collections/list", {}) or []

	async def has_collection(self, name: str) -> bool:
		data = await self._post("collections/has", {"collectionName": name})
		return bool((data or {}).get("has"))

	async def create_collection(self, name: str, schema: dict[str, Any]) -> None:
		payload = {"collectionName": name, "schema": schema}
		await self._post("collections/create", payload)

	async def describe_collection(self, name: str) -> dict[str, Any]:
		return await self._post("collections/describe", {"collectionName": name}) or {}

	async def load_collection(self, name: str) -> None:
		await self._post("collections/load", {"collectionName": name})

	async def create_index(self, name: str, index_params: list[dict[str, Any]]) -> None:
		await self._post(
			"indexes/create", {"collectionName": name, "indexParams": index_params}
		)

	# entities
	async def insert(self, name: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
		payload = {"collectionName": name, "data": rows}
		return await self._post("entities/insert", payload) or {}

	async def query(
		self,
		name: str,
		filter: str,
		output_fields: list[str],
		limit: int,
		offset: int = 0,
	) -> list[dict[str, Any]]:
		payload: dict[str, Any] = {
			"collectionName": name,
			"filter": filter,
			"outputFields": output_fields,
			"limit": limit,
		}
		if offset:
			payload["offset"] = offset
		return await self._post("entities/query", payload) or []

	async def search(
		self,
		name: str,
		vector: list[float],
		anns_field: str,
		limit: int,
		output_fields: list[str],
		search_params: dict[str, Any],
		filter: str = "",
	) -> list[dict[str, Any]]:
		payload: dict[str, Any] = {
			"collectionName": name,
			"data": [vector],
			"annsField": anns_field,
			"limit": limit,
			"outputFields": output_fields,
			"searchParams": search_params,
		}
		if filter:
			payload["filter"] = filter
		return await self._post("entities/search", payload) or []

	async def delete(self, name: str, filter: str) -> dict[str, Any]:
		payload = {"collectionName": name, "filter": filter}
		return await self._post("entities/delete", payload) or {}

	async def ping(self) -> bool:
		try:
			await self.list_collections()
			return True
		except (StoreUnavailableError, StoreRequestError):
			return False
