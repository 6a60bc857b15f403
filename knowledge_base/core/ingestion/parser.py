import io
from pathlib import PurePath

import docx
import pytesseract
from loguru import logger
from PIL import Image
from pymupdf import Document
from pymupdf import open as pdf_open
from pymupdf4llm import to_markdown

from knowledge_base.core.errors import UnsupportedFileTypeError, ValidationError
from knowledge_base.core.metrics import INGEST_OCR_PAGES

REPLACEMENT_CHAR = "\ufffd"

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_EXTENSIONS = {
	".txt",
	".md",
	".js",
	".py",
	".java",
	".c",
	".cpp",
	".html",
	".css",
}


def _needs_ocr(text: str, min_replacements: int = 5, max_ratio: float = 0.01) -> bool:
	"""
	Decide if a page needs OCR based on the presence of replacement characters.
	This means that the page is likely corrupted or is an image-only PDF.
	"""
	if not text or not text.strip():
		return True
	reps = text.count(REPLACEMENT_CHAR)
	if reps >= min_replacements:
		return True

	return (reps / max(len(text), 1)) > max_ratio


def _ocr_page(doc: Document, page_index: int, dpi: int = 300, lang: str = "eng") -> str:
	page = doc[page_index]
	pix = page.get_pixmap(dpi=dpi)  # type: ignore
	img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

	try:
		return pytesseract.image_to_string(img, lang=lang, config="--psm 6")
	except Exception as e:
		logger.error(f"OCR failed on page {page_index + 1}: {e}")
		return ""


def pdf_pages(doc: Document, ocr_lang: str = "eng", dpi: int = 300) -> list[str]:
	pages = to_markdown(doc, page_chunks=True, embed_images=False)
	if isinstance(pages, str):
		pages = [{"text": pages}]

	texts: list[str] = []
	for i, page_obj in enumerate(pages):
		txt = page_obj.get("text") or ""
		if _needs_ocr(txt) and i < len(doc):
			ocr_txt = _ocr_page(doc, i, dpi=dpi, lang=ocr_lang)
			INGEST_OCR_PAGES.inc()
			if ocr_txt and (
				REPLACEMENT_CHAR in txt or len(txt.strip()) < len(ocr_txt.strip()) * 0.5
			):
				logger.debug(f"Applied OCR fallback on page {i + 1}")
				txt = ocr_txt
		texts.append(txt.strip())
	return texts


def extract_pdf(data: bytes) -> str:
	doc = pdf_open(stream=data, filetype="pdf")
	try:
		pages = pdf_pages(doc)
	finally:
		doc.close()
	return "\n\n".join(p for p in pages if p)


def extract_docx(data: bytes) -> str:
	document = docx.Document(io.BytesIO(data))
	return "\n\n".join(p.text for p in document.paragraphs if p.text.strip())


def extract_plain(data: bytes) -> str:
	return data.decode("utf-8-sig", errors="replace")


def detect_kind(filename: str | None, content_type: str | None) -> str:
	ext = PurePath(filename or "").suffix.lower()
	mime = (content_type or "").split(";")[0].strip().lower()

	if mime == PDF_MIME or ext == ".pdf":
		return "pdf"
	if mime == DOCX_MIME or ext == ".docx":
		return "docx"
	if mime == "text/plain" or ext in TEXT_EXTENSIONS:
		return "text"
	raise UnsupportedFileTypeError(
		f"Unsupported file type: {content_type or ext or 'unknown'}"
	)


def extract_text(data: bytes, filename: str | None, content_type: str | None) -> str:
	"""Plain text of a PDF, Word (.docx) or text file."""
	kind = detect_kind(filename, content_type)
	try:
		if kind == "pdf":
			text = extract_pdf(data)
		elif kind == "docx":
			text = extract_docx(data)
		else:
			text = extract_plain(data)
	except Exception as e:
		logger.exception(f"Text extraction failed for {filename}")
		raise ValidationError(f"Could not extract text from {filename}: {e}") from e

	if not text.strip():
		raise ValidationError(f"No text found in {filename}")
	logger.debug(f"Extracted {len(text)} characters from {filename} ({kind})")
	return text
