from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
	return datetime.now(timezone.utc)


def ensure_aware_utc(dt: datetime) -> datetime:
	"""Ensures that the datetime is timezone-aware and in UTC."""
	if dt.tzinfo is None:
		# fallback for legacy values
		return dt.replace(tzinfo=timezone.utc)
	if dt.utcoffset() != timedelta(0):
		# normalize to UTC preserving the instant
		return dt.astimezone(timezone.utc)
	return dt
