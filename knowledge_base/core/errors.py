"""
Error taxonomy shared by the adapters and the HTTP layer.

Every error carries a human-readable `message` and the HTTP status the API answers
with. Nothing here is fatal to the process: handlers turn these into structured
responses (see `knowledge_base.register_error_handlers`).
"""


class KnowledgeBaseError(Exception):
	status_code: int = 500

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


class ValidationError(KnowledgeBaseError):
	"""Malformed documents or search parameters. Never retried."""

	status_code = 400


class UnsupportedFileTypeError(ValidationError):
	status_code = 415


class DimensionMismatchError(KnowledgeBaseError):
	status_code = 422

	def __init__(self, expected: int, actual: int, what: str = "Query vector"):
		super().__init__(
			f"{what} dimension {actual} does not match collection dimension {expected}"
		)
		self.expected = expected
		self.actual = actual


class ServiceUnavailableError(KnowledgeBaseError):
	"""An external service could not be reached after the configured retries."""

	status_code = 503


class StoreUnavailableError(ServiceUnavailableError):
	pass


class ModelUnavailableError(ServiceUnavailableError):
	pass


class StoreRequestError(KnowledgeBaseError):
	"""Milvus answered, but with a non-zero status code."""

	status_code = 502

	def __init__(self, message: str, code: int | None = None):
		super().__init__(message)
		self.code = code


class EmbeddingServiceError(KnowledgeBaseError):
	status_code = 502


class EmbeddingUnavailableError(EmbeddingServiceError, ServiceUnavailableError):
	status_code = 503


class ChatServiceError(KnowledgeBaseError):
	status_code = 502


class RetrievalError(KnowledgeBaseError):
	"""Similarity search failed while building a grounded prompt."""

	status_code = 502


class ModelRequestError(KnowledgeBaseError):
	"""Ollama answered with a 4xx (unknown model, bad payload)."""

	status_code = 502
