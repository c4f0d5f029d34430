"""
Conversion between plain JSON values and the document store's typed wire format.

Every wire value is a dict carrying exactly one type tag, e.g. {"stringValue": "x"}
or {"integerValue": "42"}. Integers travel as decimal strings, doubles as floats.
"""
import logging
import math
import re
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Union

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]
WireValue = dict[str, Any]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

DATABASE_ROOT = "databases/(default)/documents"

WIRE_TAGS = (
	"nullValue",
	"booleanValue",
	"integerValue",
	"doubleValue",
	"stringValue",
	"arrayValue",
	"mapValue",
	"timestampValue",
	"referenceValue",
	"bytesValue",
	"geoPointValue",
)

_INTEGER_LITERAL = re.compile(r"-?\d+")

logger = logging.getLogger("gateway.codec")


class DecodeError(ValueError):
	"""Raised by strict decoding when a wire value is malformed."""


class InvalidArgument(ValueError):
	"""Raised when a caller hands the codec or a builder something it cannot use."""


def to_iso8601(value: date) -> str:
	if isinstance(value, datetime):
		if value.tzinfo is not None:
			value = value.astimezone(timezone.utc)
		return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
	return value.isoformat()


def encode_value(value: Any) -> WireValue:
	"""
	Encode one JSON value. Never raises: unknown types are stringified.
	The integer/double decision follows the runtime type, so 3.0 stays a double.
	"""
	if value is None:
		return {"nullValue": None}
	# bool before int, bool is an int subclass
	if isinstance(value, bool):
		return {"booleanValue": value}
	if isinstance(value, int):
		if INT64_MIN <= value <= INT64_MAX:
			return {"integerValue": str(value)}
		try:
			return {"doubleValue": float(value)}
		except OverflowError:
			return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
	if isinstance(value, float):
		# JSON has no literal for these; the store takes them as strings
		if math.isnan(value):
			return {"doubleValue": "NaN"}
		if math.isinf(value):
			return {"doubleValue": "Infinity" if value > 0 else "-Infinity"}
		return {"doubleValue": value}
	if isinstance(value, str):
		return {"stringValue": value}
	if isinstance(value, date):
		return {"stringValue": to_iso8601(value)}
	if isinstance(value, (list, tuple)):
		return {"arrayValue": {"values": [encode_value(v) for v in value]}}
	if isinstance(value, Mapping):
		return {"mapValue": {"fields": encode_fields(value)}}
	return {"stringValue": str(value)}


def _malformed(message: str, strict: bool) -> None:
	if strict:
		raise DecodeError(message)
	logger.debug(f"Decoding malformed wire value as null: {message}")
	return None


def decode_value(wire: Any, strict: bool = False) -> JSONValue:
	"""
	Decode one wire value back to JSON.

	A value with no recognized tag decodes to None. Malformed values (not a dict,
	several tags, a bad integer literal) also decode to None unless strict is set,
	in which case DecodeError is raised.
	"""
	if not isinstance(wire, Mapping):
		return _malformed(f"expected a mapping, got {type(wire).__name__}", strict)

	tags = [tag for tag in WIRE_TAGS if tag in wire]
	if not tags:
		return None
	if len(tags) > 1:
		return _malformed(f"conflicting type tags {tags}", strict)

	tag = tags[0]
	raw = wire[tag]

	if tag == "nullValue":
		return None
	if tag == "booleanValue":
		return bool(raw)
	if tag == "integerValue":
		text = str(raw)
		if not _INTEGER_LITERAL.fullmatch(text):
			return _malformed(f"invalid integer literal {text!r}", strict)
		return int(text)
	if tag == "doubleValue":
		try:
			return float(raw)
		except (TypeError, ValueError):
			return _malformed(f"invalid double {raw!r}", strict)
	if tag in ("stringValue", "timestampValue", "referenceValue", "bytesValue"):
		return raw
	if tag == "arrayValue":
		values = raw.get("values") if isinstance(raw, Mapping) else None
		return [decode_value(v, strict) for v in values or []]
	if tag == "mapValue":
		fields = raw.get("fields") if isinstance(raw, Mapping) else None
		return decode_fields(fields or {}, strict)
	# geoPointValue
	if not isinstance(raw, Mapping):
		return _malformed(f"invalid geo point {raw!r}", strict)
	return {"latitude": raw.get("latitude", 0.0), "longitude": raw.get("longitude", 0.0)}


def encode_fields(obj: Mapping[str, Any]) -> dict[str, WireValue]:
	if not isinstance(obj, Mapping):
		raise InvalidArgument(f"expected a JSON object, got {type(obj).__name__}")
	return {key: encode_value(value) for key, value in obj.items()}


def decode_fields(fields: Any, strict: bool = False) -> dict[str, JSONValue]:
	if not isinstance(fields, Mapping):
		return {}
	return {key: decode_value(value, strict) for key, value in fields.items()}


def document_id(name: str) -> str:
	return name.rsplit("/", 1)[-1]


def decode_document(doc: Any) -> dict[str, JSONValue]:
	"""
	Decode a store document into a plain dict and add its id.

	Missing or malformed input degrades to an empty dict instead of raising.
	The id taken from the document name is written last, so it replaces any
	stored field that is also called "id".
	"""
	if not isinstance(doc, Mapping):
		return {}
	obj = decode_fields(doc.get("fields"))
	name = doc.get("name")
	if isinstance(name, str) and name:
		obj["id"] = document_id(name)
	return obj


def decode_documents(listing: Any) -> list[dict[str, JSONValue]]:
	if not isinstance(listing, Mapping):
		return []
	documents = listing.get("documents")
	if not isinstance(documents, list):
		return []
	return [decode_document(doc) for doc in documents]


def document_path(project_id: str, *segments: str) -> str:
	"""Fully-qualified document name, e.g. projects/p/databases/(default)/documents/games/g1"""
	if not project_id:
		raise InvalidArgument("project id must not be empty")
	for segment in segments:
		if not isinstance(segment, str) or not segment:
			raise InvalidArgument(f"invalid path segment {segment!r}")
	return "/".join(["projects", project_id, DATABASE_ROOT, *segments])
