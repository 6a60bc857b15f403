from loguru import logger

from knowledge_base.core.store.document_store import DocumentStore


async def init_milvus(store: DocumentStore) -> None:
	"""Make sure the chunk collection and its index exist before serving."""
	created = await store.ensure_collection()
	if created:
		logger.info(f"Collection '{store.collection_name}' created at startup")
	else:
		logger.debug(
			f"Collection '{store.collection_name}' ready (dim={store.dim})"
		)
