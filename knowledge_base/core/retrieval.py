from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from knowledge_base.core.errors import (
	KnowledgeBaseError,
	RetrievalError,
	ValidationError,
)
from knowledge_base.core.ingestion.embedder import Embedder
from knowledge_base.core.schemas import SearchResult
from knowledge_base.core.store.document_store import DocumentStore

PROMPT_TEMPLATE = (
	"Answer the question based on the following context:\n\n"
	"{context}\n\n"
	"Question: {question}"
)


@dataclass
class PromptResult:
	prompt: str
	used_chunks: list[SearchResult] = field(default_factory=list)


def assemble_prompt(question: str, chunks: Iterable[SearchResult]) -> str:
	context = "\n\n".join(c.content for c in chunks)
	return PROMPT_TEMPLATE.format(context=context, question=question)


class PromptBuilder:
	"""
	Grounds a question in the stored documents: embed it, fetch the top-k
	similar chunks (optionally only from the given file ids) and wrap their
	text in a fixed template. The context is not truncated.

	A failed search raises `RetrievalError`; falling back to an ungrounded
	prompt is the caller's decision.
	"""

	def __init__(self, embedder: Embedder, store: DocumentStore):
		self.embedder = embedder
		self.store = store

	async def build_prompt(
		self,
		question: str,
		scope: Iterable[str] | None = None,
		top_k: int = 3,
	) -> PromptResult:
		if not question or not question.strip():
			raise ValidationError("Question must not be empty")

		query_vector = await self.embedder.embed(question)
		logger.debug(f"Question embedded, dimension {len(query_vector)}")

		try:
			chunks = await self.store.search(query_vector, top_k, scope)
		except KnowledgeBaseError as e:
			raise RetrievalError(f"Document search failed: {e.message}") from e

		for i, c in enumerate(chunks, start=1):
			logger.debug(f"Context chunk {i}: file_id={c.file_id} score={c.score:.4f}")

		return PromptResult(prompt=assemble_prompt(question, chunks), used_chunks=chunks)
