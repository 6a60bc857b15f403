import numbers
from typing import Any, List, Sequence

from loguru import logger

from knowledge_base.core.connectors.ollama import OllamaClient
from knowledge_base.core.errors import (
	EmbeddingServiceError,
	EmbeddingUnavailableError,
	ModelRequestError,
	ModelUnavailableError,
)
from knowledge_base.core.metrics import EMBED_ERRORS, EMBED_REQUESTS, observe


def _vector_from(resp: Any) -> List[float]:
	vec = resp.get("embedding") if isinstance(resp, dict) else None
	if not isinstance(vec, list) or not vec:
		raise EmbeddingServiceError("Embedding response has no 'embedding' vector")
	if not all(isinstance(x, numbers.Real) and not isinstance(x, bool) for x in vec):
		raise EmbeddingServiceError("Embedding response contains non-numeric values")
	return [float(x) for x in vec]


class Embedder:
	"""
	Turns text into vectors through the Ollama embedding endpoint.

	The vector dimension is not checked here; the store compares it with the
	collection.
	"""

	def __init__(self, client: OllamaClient, model_name: str = "mxbai-embed-large"):
		self.client = client
		self.model_name = model_name

	async def embed(self, text: str) -> List[float]:
		EMBED_REQUESTS.inc()
		try:
			with observe("embed"):
				resp = await self.client.embeddings(self.model_name, text)
			return _vector_from(resp)
		except ModelUnavailableError as e:
			EMBED_ERRORS.inc()
			raise EmbeddingUnavailableError(e.message) from e
		except ModelRequestError as e:
			EMBED_ERRORS.inc()
			raise EmbeddingServiceError(e.message) from e
		except EmbeddingServiceError:
			EMBED_ERRORS.inc()
			raise

	async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
		"""
		Embed texts one after another, so output i always belongs to input i.
		Any failure aborts the whole batch.
		"""
		vectors: List[List[float]] = []
		for text in texts:
			vectors.append(await self.embed(text))
		logger.debug(f"Embedded {len(vectors)} texts with {self.model_name}")
		return vectors
