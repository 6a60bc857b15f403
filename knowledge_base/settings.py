from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
	# milvus stuff
	MILVUS_URL: str = "http://localhost:19530"
	MILVUS_SECRET: str = ""
	MILVUS_COLLECTION: str = "document_embeddings"
	EMBEDDING_DIM: int = 1024
	HNSW_M: int = 8
	HNSW_EF_CONSTRUCTION: int = 64
	SEARCH_EF: int = 64

	# ollama
	OLLAMA_URL: str = "http://localhost:11434"
	EMBED_MODEL: str = "mxbai-embed-large"
	CHAT_MODEL: str = "llama3"

	# external calls: fixed attempts, fixed delay
	SERVICE_RETRIES: int = 3
	SERVICE_RETRY_DELAY: float = 1.0
	SERVICE_TIMEOUT: float = 60.0

	# ingestion / retrieval
	MAX_CHUNK_SIZE: int = 1000
	MAX_UPLOAD_MB: int = 20
	RECENT_LIMIT: int = 10
	RAG_TOP_K: int = 3

	# fastapi
	HOST: str = "0.0.0.0"
	PORT: int = 3000
	RELOAD: bool = False
	WORKERS: int = 1
	LOG_LEVEL: str = "INFO"

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"

	@classmethod
	@lru_cache
	def get(cls) -> "Settings":
		return Settings()  # type: ignore
