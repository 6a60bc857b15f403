from typing import Iterable

from knowledge_base.core.schemas import LogicalDocument, StoredChunk


def latest_per_file(chunks: Iterable[StoredChunk], limit: int) -> list[StoredChunk]:
	"""
	Keep one chunk per `file_id`, the one with the latest metadata timestamp,
	then order newest first and cap at `limit`.

	Ties keep the chunk seen first, both when picking the latest chunk of a
	file and when ordering files with equal timestamps. Pure: the input is only
	read.
	"""
	latest: dict[str, StoredChunk] = {}
	for chunk in chunks:
		current = latest.get(chunk.file_id)
		if current is None or chunk.metadata.timestamp > current.metadata.timestamp:
			latest[chunk.file_id] = chunk

	ordered = sorted(
		latest.values(), key=lambda c: c.metadata.timestamp, reverse=True
	)
	return ordered[: max(limit, 0)]


def to_logical_document(chunk: StoredChunk) -> LogicalDocument:
	meta = chunk.metadata
	return LogicalDocument(
		uid=chunk.file_id,
		name=meta.file_name,
		type=meta.type,
		description=meta.description,
		upload_time=meta.timestamp,
	)
