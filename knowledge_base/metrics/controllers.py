from typing import Any, Dict, Iterable, List, Tuple

from knowledge_base.core.metrics import (
	CHAT_ERRORS,
	CHAT_FALLBACKS,
	CHAT_REQUESTS,
	EMBED_ERRORS,
	EMBED_REQUESTS,
	INGEST_CHUNKS,
	INGEST_FAILURES,
	INGEST_FILES,
	INGEST_OCR_PAGES,
	SEARCH_ERRORS,
	SEARCH_REQUESTS,
	STAGE_LATENCY,
	STORE_DELETES,
	STORE_ERRORS,
	STORE_INSERT_BATCHES,
	STORE_INSERT_ROWS,
)

INF = float("inf")


def _counter_value(c) -> int:
	try:
		return int(c._value.get())  # type: ignore[attr-defined]
	except Exception:
		return 0


def _bucket_bound(le: str) -> float:
	try:
		return INF if le == "+Inf" else float(le)
	except ValueError:
		return INF


def _percentile(buckets: List[Tuple[float, float]], count: int, q: float):
	"""Upper bound of the first cumulative bucket reaching quantile q."""
	if count <= 0:
		return None
	target = q * count
	for le, cumulative in buckets:
		if cumulative >= target:
			return None if le == INF else le
	return None


def _samples_by_stage() -> Dict[str, Dict[str, Any]]:
	by_stage: Dict[str, Dict[str, Any]] = {}
	for metric in STAGE_LATENCY.collect():
		for s in metric.samples:
			labels = s.labels or {}
			entry = by_stage.setdefault(
				labels.get("stage", "unknown"), {"buckets": [], "sum": 0.0, "count": 0}
			)
			if s.name.endswith("_bucket"):
				entry["buckets"].append((_bucket_bound(labels.get("le", "+Inf")), s.value))
			elif s.name.endswith("_sum"):
				entry["sum"] = float(s.value)
			elif s.name.endswith("_count"):
				entry["count"] = int(s.value)
	return by_stage


def _stage_latency_stats(stages: Iterable[str] | None = None) -> Dict[str, Any]:
	"""Per-stage latency: count, sum, avg, p50/p90/p99 and cumulative buckets."""
	wanted = set(stages or ())
	stats: Dict[str, Any] = {}
	for stage, entry in _samples_by_stage().items():
		if wanted and stage not in wanted:
			continue
		count = entry["count"]
		buckets = sorted(entry["buckets"], key=lambda b: b[0])
		stats[stage] = {
			"count": count,
			"sum": entry["sum"],
			"avg": entry["sum"] / count if count else None,
			"p50": _percentile(buckets, count, 0.50),
			"p90": _percentile(buckets, count, 0.90),
			"p99": _percentile(buckets, count, 0.99),
			"buckets": [
				{"le": "+Inf" if le == INF else le, "cumulative": cum}
				for le, cum in buckets
			],
		}
	return stats


def get_ui_metrics(stages: Iterable[str] | None = None) -> Dict[str, Any]:
	"""Return metrics for UI consumption, latency optionally limited to `stages`."""
	return {
		"counts": {
			"ingest": {
				"files": _counter_value(INGEST_FILES),
				"failures": _counter_value(INGEST_FAILURES),
				"chunks": _counter_value(INGEST_CHUNKS),
				"ocr_pages": _counter_value(INGEST_OCR_PAGES),
			},
			"embed": {
				"requests": _counter_value(EMBED_REQUESTS),
				"errors": _counter_value(EMBED_ERRORS),
			},
			"store": {
				"insert_batches": _counter_value(STORE_INSERT_BATCHES),
				"insert_rows": _counter_value(STORE_INSERT_ROWS),
				"deletes": _counter_value(STORE_DELETES),
				"errors": _counter_value(STORE_ERRORS),
			},
			"search": {
				"requests": _counter_value(SEARCH_REQUESTS),
				"errors": _counter_value(SEARCH_ERRORS),
			},
			"chat": {
				"requests": _counter_value(CHAT_REQUESTS),
				"fallbacks": _counter_value(CHAT_FALLBACKS),
				"errors": _counter_value(CHAT_ERRORS),
			},
		},
		"stage_latency": _stage_latency_stats(stages),
	}
