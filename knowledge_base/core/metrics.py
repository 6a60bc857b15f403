import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

# Counts
INGEST_FILES = Counter(
	"ingest_files_total",
	"Files submitted for ingestion",
)
INGEST_FAILURES = Counter(
	"ingest_failures_total",
	"Files that failed to ingest",
)
INGEST_CHUNKS = Counter(
	"ingest_chunks_total",
	"Chunks generated",
)
INGEST_OCR_PAGES = Counter(
	"ingest_ocr_pages_total",
	"PDF pages that went through OCR",
)

EMBED_REQUESTS = Counter(
	"embed_requests_total",
	"Embedding calls",
)
EMBED_ERRORS = Counter(
	"embed_errors_total",
	"Failed embedding calls",
)

STORE_INSERT_BATCHES = Counter(
	"store_insert_batches_total",
	"Insert batches sent to Milvus",
)
STORE_INSERT_ROWS = Counter(
	"store_insert_rows_total",
	"Rows inserted into Milvus",
)
STORE_DELETES = Counter(
	"store_deletes_total",
	"Delete requests sent to Milvus",
)
STORE_ERRORS = Counter(
	"store_errors_total",
	"Failed Milvus requests",
)

SEARCH_REQUESTS = Counter(
	"search_requests_total",
	"Similarity searches",
)
SEARCH_ERRORS = Counter(
	"search_errors_total",
	"Failed similarity searches",
)

CHAT_REQUESTS = Counter(
	"chat_requests_total",
	"Chat questions received",
)
CHAT_FALLBACKS = Counter(
	"chat_fallbacks_total",
	"Knowledge-base questions answered without context after a retrieval failure",
)
CHAT_ERRORS = Counter(
	"chat_errors_total",
	"Failed chat completions",
)

# latency per stage (seconds)
STAGE_LATENCY = Histogram(
	"rag_stage_latency_seconds",
	"Latency per pipeline stage",
	["stage"],
	# extract | chunk | embed | milvus_insert | milvus_search | milvus_query | chat
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


@contextmanager
def observe(stage: str):
	start = time.perf_counter()
	try:
		yield
	finally:
		STAGE_LATENCY.labels(stage).observe(time.perf_counter() - start)
