from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from loguru import logger

from knowledge_base.core.connectors.milvus import MilvusClient
from knowledge_base.core.connectors.milvus_bootstrap import init_milvus
from knowledge_base.core.connectors.ollama import OllamaClient
from knowledge_base.core.ingestion.embedder import Embedder
from knowledge_base.core.retrieval import PromptBuilder
from knowledge_base.core.store.document_store import DocumentStore
from knowledge_base.settings import Settings


@dataclass
class Services:
	"""Everything a request needs, built once per process."""

	settings: Settings
	milvus: MilvusClient
	ollama: OllamaClient
	store: DocumentStore
	embedder: Embedder
	prompts: PromptBuilder

	@classmethod
	def from_settings(cls, settings: Settings) -> "Services":
		milvus = MilvusClient.from_settings(settings)
		ollama = OllamaClient.from_settings(settings)
		store = DocumentStore.from_settings(milvus, settings)
		embedder = Embedder(ollama, model_name=settings.EMBED_MODEL)
		return cls(
			settings=settings,
			milvus=milvus,
			ollama=ollama,
			store=store,
			embedder=embedder,
			prompts=PromptBuilder(embedder, store),
		)

	async def close(self) -> None:
		await self.milvus.close()
		await self.ollama.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
	settings = Settings.get()

	logger.info("Initializing Milvus and Ollama clients...")
	services = Services.from_settings(settings)
	app.state.services = services

	try:
		await init_milvus(services.store)
		logger.info("Milvus bootstrap completed.")
	except Exception:
		logger.exception(
			"Milvus bootstrap failed (continuing); vector store features are "
			"unavailable until Milvus is reachable."
		)

	try:
		yield
	finally:
		await services.close()
		logger.info("HTTP clients closed.")


def get_services(request: Request) -> Services:
	return request.app.state.services


def get_settings(request: Request) -> Settings:
	return get_services(request).settings


def get_store(request: Request) -> DocumentStore:
	return get_services(request).store


def get_embedder(request: Request) -> Embedder:
	return get_services(request).embedder


def get_prompt_builder(request: Request) -> PromptBuilder:
	return get_services(request).prompts


def get_ollama(request: Request) -> OllamaClient:
	return get_services(request).ollama


def get_milvus(request: Request) -> MilvusClient:
	return get_services(request).milvus
