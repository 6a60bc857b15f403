"""Tests for knowledge_base/chat/controllers.py"""
import pytest

from knowledge_base.chat.controllers import (
	answer_question,
	available_models,
	collect_references,
)
from knowledge_base.chat.schemas import ChatMessage
from knowledge_base.core.errors import (
	EmbeddingServiceError,
	ModelUnavailableError,
	RetrievalError,
	ValidationError,
)
from knowledge_base.core.retrieval import PromptResult

from .conftest import FakeChat, FakePromptBuilder, make_result


class TestCollectReferences:
	def test_one_per_document_best_score(self):
		chunks = [
			make_result("a", "one", 0.6, file_name="a.pdf"),
			make_result("b", "two", 0.5, file_name="b.pdf"),
			make_result("a", "three", 0.9, file_name="a.pdf"),
		]
		refs = collect_references(chunks)
		assert [(r.file_id, r.name, r.score) for r in refs] == [
			("a", "a.pdf", 0.9),
			("b", "b.pdf", 0.5),
		]

	def test_name_falls_back_to_file_id(self):
		(ref,) = collect_references([make_result("xyz", "c", 0.1, file_name="")])
		assert ref.name == "xyz"


class TestAnswerQuestion:
	async def test_grounded(self):
		chunks = [make_result("a", "ctx", 0.8, file_name="a.pdf")]
		prompts = FakePromptBuilder(PromptResult(prompt="GROUNDED", used_chunks=chunks))
		chat = FakeChat(reply="42")

		resp = await answer_question(
			"What?", "llama3", chat, prompts, scope=["a"], top_k=2
		)

		assert prompts.calls == [("What?", ["a"], 2)]
		messages, model = chat.calls[0]
		assert messages == [{"role": "user", "content": "GROUNDED"}]
		assert model == "llama3"
		assert resp.answer.role == "assistant"
		assert resp.answer.content == "42"
		assert resp.grounded is True
		assert resp.system_message.role == "system"
		assert "a.pdf" in resp.system_message.content

	async def test_grounded_ignores_history(self):
		prompts = FakePromptBuilder(PromptResult(prompt="P"))
		chat = FakeChat()
		history = [ChatMessage(role="user", content="earlier")]
		await answer_question("q", "m", chat, prompts, history=history)
		assert chat.calls[0][0] == [{"role": "user", "content": "P"}]

	async def test_retrieval_failure_falls_back(self):
		prompts = FakePromptBuilder(error=RetrievalError("search failed"))
		chat = FakeChat(reply="best effort")

		resp = await answer_question("Raw question?", "llama3", chat, prompts)

		assert chat.calls[0][0] == [{"role": "user", "content": "Raw question?"}]
		assert resp.answer.content == "best effort"
		assert resp.grounded is False
		assert resp.references == []
		assert resp.system_message is None

	async def test_embedding_failure_propagates(self):
		prompts = FakePromptBuilder(error=EmbeddingServiceError("bad vector"))
		chat = FakeChat()
		with pytest.raises(EmbeddingServiceError):
			await answer_question("q", "m", chat, prompts)
		assert chat.calls == []

	async def test_plain_mode_sends_history(self):
		prompts = FakePromptBuilder()
		chat = FakeChat()
		history = [
			ChatMessage(role="user", content="Hi"),
			ChatMessage(role="assistant", content="Hello!"),
		]
		resp = await answer_question(
			"And now?", "m", chat, prompts, use_knowledge_base=False, history=history
		)
		assert prompts.calls == []
		assert chat.calls[0][0] == [
			{"role": "user", "content": "Hi"},
			{"role": "assistant", "content": "Hello!"},
			{"role": "user", "content": "And now?"},
		]
		assert resp.grounded is False

	async def test_chat_failure_propagates(self):
		class DownChat(FakeChat):
			async def chat(self, messages, model):
				raise ModelUnavailableError("Ollama unavailable")

		with pytest.raises(ModelUnavailableError):
			await answer_question(
				"q", "m", DownChat(), FakePromptBuilder(), use_knowledge_base=False
			)

	async def test_empty_message(self):
		with pytest.raises(ValidationError):
			await answer_question(" ", "m", FakeChat(), FakePromptBuilder())


async def test_available_models():
	chat = FakeChat(
		models=[
			{"name": "llama3:latest", "size": 10, "modified_at": "2024-05-01"},
			{"size": 3},
		]
	)
	models = await available_models(chat)
	assert [m.name for m in models] == ["llama3:latest"]
	assert models[0].size == 10
