from typing import List

from fastapi import APIRouter, Depends

from knowledge_base.core.connectors.ollama import OllamaClient
from knowledge_base.core.retrieval import PromptBuilder
from knowledge_base.dependencies import get_ollama, get_prompt_builder, get_settings
from knowledge_base.settings import Settings

from .controllers import answer_question, available_models
from .schemas import ChatRequest, ChatResponse, ModelInfo

router = APIRouter(prefix="/api")


@router.post("/chat", response_model=ChatResponse)
async def chat(
	payload: ChatRequest,
	ollama: OllamaClient = Depends(get_ollama),
	prompts: PromptBuilder = Depends(get_prompt_builder),
	settings: Settings = Depends(get_settings),
) -> ChatResponse:
	return await answer_question(
		question=payload.message,
		model=payload.model or settings.CHAT_MODEL,
		ollama=ollama,
		prompts=prompts,
		use_knowledge_base=payload.use_knowledge_base,
		scope=payload.file_ids,
		top_k=payload.top_k or settings.RAG_TOP_K,
		history=payload.history,
	)


@router.get("/models", response_model=List[ModelInfo])
async def models(ollama: OllamaClient = Depends(get_ollama)):
	return await available_models(ollama)
