import httpx
from loguru import logger
from tenacity import (
	AsyncRetrying,
	RetryCallState,
	retry_if_exception,
	stop_after_attempt,
	wait_fixed,
)


def is_unavailable(exc: BaseException) -> bool:
	"""Transport failures and 5xx answers are worth another attempt; nothing else is."""
	if isinstance(exc, httpx.TransportError):
		return True
	if isinstance(exc, httpx.HTTPStatusError):
		return exc.response.status_code >= 500
	return False


def _log_retry(state: RetryCallState) -> None:
	exc = state.outcome.exception() if state.outcome else None
	logger.warning(
		f"Attempt {state.attempt_number} failed ({type(exc).__name__}: {exc}); retrying"
	)


def service_retrying(attempts: int, delay: float) -> AsyncRetrying:
	return AsyncRetrying(
		stop=stop_after_attempt(max(attempts, 1)),
		wait=wait_fixed(delay),
		retry=retry_if_exception(is_unavailable),
		before_sleep=_log_retry,
		reraise=True,
	)


def short_err(stage: str, e: BaseException, limit: int = 300) -> str:
	s = f"{stage}: {type(e).__name__}: {str(e)}"
	return (s[: limit - 3] + "...") if len(s) > limit else s
