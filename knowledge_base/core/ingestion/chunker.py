import re
from typing import List

MAX_CHUNK_SIZE = 1000
PARAGRAPH_SEP = "\n\n"

# a blank line, possibly holding whitespace, separates paragraphs
_PARAGRAPH_RE = re.compile(r"\n\s*\n")


def split_paragraphs(text: str) -> List[str]:
	return [p for p in _PARAGRAPH_RE.split(text or "") if p.strip()]


def split_text(text: str, max_chunk_size: int = MAX_CHUNK_SIZE) -> List[str]:
	"""
	Paragraph-respecting chunking.

	Paragraphs are packed greedily into a buffer, joined by a blank line, while
	the result stays within `max_chunk_size`. A paragraph longer than the limit
	flushes the buffer and is cut into consecutive pieces of exactly
	`max_chunk_size` characters (the last one may be shorter), each emitted on
	its own. Deterministic and side-effect free.
	"""
	if max_chunk_size < 1:
		raise ValueError("max_chunk_size must be positive")

	chunks: List[str] = []
	buf = ""
	for paragraph in split_paragraphs(text):
		if len(paragraph) > max_chunk_size:
			if buf:
				chunks.append(buf)
				buf = ""
			for start in range(0, len(paragraph), max_chunk_size):
				chunks.append(paragraph[start : start + max_chunk_size])
		elif not buf:
			buf = paragraph
		# count the full two-character separator, or a chunk could reach max + 1
		elif len(buf) + len(PARAGRAPH_SEP) + len(paragraph) <= max_chunk_size:
			buf = f"{buf}{PARAGRAPH_SEP}{paragraph}"
		else:
			chunks.append(buf)
			buf = paragraph

	if buf:
		chunks.append(buf)
	return chunks
