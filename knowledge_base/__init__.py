from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from knowledge_base.core.errors import KnowledgeBaseError
from knowledge_base.dependencies import lifespan

from .chat import chat_router
from .documents import documents_router
from .health import router as health_router
from .metrics import metrics_router


async def knowledge_base_error_handler(
	request: Request, exc: KnowledgeBaseError
) -> JSONResponse:
	if exc.status_code >= 500:
		logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
	else:
		logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
	return JSONResponse(
		status_code=exc.status_code,
		content={"error": type(exc).__name__, "message": exc.message},
	)


def register_error_handlers(app: FastAPI) -> None:
	app.add_exception_handler(
		KnowledgeBaseError, knowledge_base_error_handler  # type: ignore[arg-type]
	)


def create_app(with_lifespan: bool = True) -> FastAPI:
	app = FastAPI(
		title="Knowledge Base API",
		version="0.1.0",
		separate_input_output_schemas=False,
		lifespan=lifespan if with_lifespan else None,
	)
	register_error_handlers(app)

	app.include_router(health_router, tags=["health"])
	app.include_router(documents_router, tags=["documents"])
	app.include_router(chat_router, tags=["chat"])
	app.include_router(metrics_router, tags=["metrics"])

	return app
