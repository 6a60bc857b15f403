from typing import Iterable, List

from loguru import logger

from knowledge_base.core.connectors.ollama import OllamaClient
from knowledge_base.core.errors import (
	KnowledgeBaseError,
	RetrievalError,
	ValidationError,
)
from knowledge_base.core.metrics import (
	CHAT_ERRORS,
	CHAT_FALLBACKS,
	CHAT_REQUESTS,
	observe,
)
from knowledge_base.core.retrieval import PromptBuilder
from knowledge_base.core.schemas import SearchResult

from .schemas import ChatMessage, ChatResponse, ModelInfo, Reference


def collect_references(chunks: Iterable[SearchResult]) -> List[Reference]:
	"""One reference per source document, in retrieval order, keeping its best score."""
	refs: dict[str, Reference] = {}
	for c in chunks:
		name = c.metadata.file_name if c.metadata and c.metadata.file_name else c.file_id
		current = refs.get(c.file_id)
		if current is None:
			refs[c.file_id] = Reference(file_id=c.file_id, name=name, score=c.score)
		elif c.score > current.score:
			current.score = c.score
	return list(refs.values())


async def answer_question(
	question: str,
	model: str,
	ollama: OllamaClient,
	prompts: PromptBuilder,
	use_knowledge_base: bool = True,
	scope: Iterable[str] | None = None,
	top_k: int = 3,
	history: Iterable[ChatMessage] = (),
) -> ChatResponse:
	"""
	Answer a question with the chat model.

	Knowledge-base mode sends a single grounded prompt (no history). When
	retrieval fails the raw question is sent instead and the answer is marked
	as not grounded. Plain mode sends the conversation history followed by the
	question.
	"""
	if not question or not question.strip():
		raise ValidationError("Message must not be empty")

	CHAT_REQUESTS.inc()
	references: List[Reference] = []
	grounded = False

	if use_knowledge_base:
		try:
			result = await prompts.build_prompt(question, scope, top_k)
			messages = [{"role": "user", "content": result.prompt}]
			references = collect_references(result.used_chunks)
			grounded = True
			logger.debug(
				f"Grounded prompt built from {len(result.used_chunks)} chunks "
				f"({len(result.prompt)} characters)"
			)
		except RetrievalError as e:
			CHAT_FALLBACKS.inc()
			logger.warning(f"Retrieval failed, answering without context: {e.message}")
			messages = [{"role": "user", "content": question}]
	else:
		messages = [{"role": m.role, "content": m.content} for m in history]
		messages.append({"role": "user", "content": question})

	try:
		with observe("chat"):
			answer = await ollama.chat(messages, model)
	except KnowledgeBaseError:
		CHAT_ERRORS.inc()
		raise

	system_message = None
	if references:
		names = ", ".join(r.name for r in references)
		system_message = ChatMessage(
			role="system", content=f"Referenced knowledge base documents: {names}"
		)

	logger.info(
		f"Answered with model={model} grounded={grounded} references={len(references)}"
	)
	return ChatResponse(
		answer=ChatMessage(role="assistant", content=answer),
		system_message=system_message,
		references=references,
		grounded=grounded,
	)


async def available_models(ollama: OllamaClient) -> List[ModelInfo]:
	models = await ollama.list_models()
	return [
		ModelInfo(
			name=m.get("name", ""),
			size=m.get("size"),
			modified_at=m.get("modified_at"),
		)
		for m in models
		if m.get("name")
	]
