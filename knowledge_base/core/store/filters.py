"""
Structured scalar filters, rendered to a Milvus boolean expression only at the
store boundary. Values are always emitted as JSON literals so user-supplied ids
can never change the shape of the expression.
"""

import json
import re
from dataclasses import dataclass
from typing import Iterable, TypeAlias

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Scalar: TypeAlias = str | int | float | bool


@dataclass(frozen=True)
class Equals:
	field: str
	value: Scalar


@dataclass(frozen=True)
class In:
	field: str
	values: tuple[Scalar, ...]

	@classmethod
	def of(cls, field: str, values: Iterable[Scalar]) -> "In":
		# keep first-seen order, drop duplicates
		return cls(field, tuple(dict.fromkeys(values)))


@dataclass(frozen=True)
class All:
	pass


Filter: TypeAlias = Equals | In | All

# auto-generated primary keys are never negative
MATCH_ALL_EXPR = "id >= 0"


def _field(name: str) -> str:
	if not _FIELD_RE.match(name):
		raise ValueError(f"Invalid filter field name: {name!r}")
	return name


def _literal(value: Scalar) -> str:
	return json.dumps(value, ensure_ascii=False)


def to_milvus_expr(f: Filter) -> str:
	if isinstance(f, All):
		return MATCH_ALL_EXPR
	if isinstance(f, Equals):
		return f"{_field(f.field)} == {_literal(f.value)}"
	if isinstance(f, In):
		values = ", ".join(_literal(v) for v in f.values)
		return f"{_field(f.field)} in [{values}]"
	raise TypeError(f"Unsupported filter: {f!r}")
