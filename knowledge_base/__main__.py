import argparse
import sys

import uvicorn
from loguru import logger

from knowledge_base.settings import Settings


def parse_args(settings: Settings, argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		prog="knowledge-base",
		description="Serve the knowledge base API (ingestion, search and chat).",
	)
	parser.add_argument("--host", default=settings.HOST)
	parser.add_argument("--port", type=int, default=settings.PORT)
	parser.add_argument("--workers", type=int, default=settings.WORKERS)
	parser.add_argument(
		"--reload", action="store_true", default=settings.RELOAD, help="dev auto-reload"
	)
	parser.add_argument("--log-level", default=settings.LOG_LEVEL)
	return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
	settings = Settings.get()
	args = parse_args(settings, argv)

	logger.remove()
	logger.add(sys.stderr, level=args.log_level.upper())
	logger.info(
		f"Starting on {args.host}:{args.port} "
		f"(milvus={settings.MILVUS_URL}, ollama={settings.OLLAMA_URL})"
	)

	uvicorn.run(
		app="knowledge_base:create_app",
		factory=True,
		host=args.host,
		port=args.port,
		reload=args.reload,
		workers=args.workers,
		log_level=args.log_level.lower(),
		use_colors=True,
	)


if __name__ == "__main__":
	main()
