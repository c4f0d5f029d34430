"""
Partial-update masks and atomic field transforms for the document store.

Transforms are plain descriptors; the store client submits them to the
commit endpoint. Operations grouped in one FieldTransform go out as a single
write so the store applies them together.
"""
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from codec import INT64_MAX, INT64_MIN, InvalidArgument, WireValue, document_path, encode_value

MASK_PARAM = "updateMask.fieldPaths"


def build_mask(partial: Mapping[str, Any]) -> list[str]:
	"""Top-level keys of a partial update; the store leaves every other field untouched."""
	if not isinstance(partial, Mapping):
		raise InvalidArgument(f"expected a JSON object, got {type(partial).__name__}")
	return list(partial)


def mask_params(mask: Sequence[str]) -> list[tuple[str, str]]:
	return [(MASK_PARAM, field) for field in mask]


def _check_field(field_path: str) -> None:
	if not isinstance(field_path, str) or not field_path:
		raise InvalidArgument("field name must be a non-empty string")


def _check_document(path: str) -> None:
	if not isinstance(path, str) or not path:
		raise InvalidArgument("document path must be a non-empty string")


@dataclass(frozen=True)
class Increment:
	field_path: str
	delta: int

	def to_wire(self) -> dict[str, Any]:
		return {"fieldPath": self.field_path, "increment": {"integerValue": str(self.delta)}}


@dataclass(frozen=True)
class AppendMissing:
	field_path: str
	values: tuple[WireValue, ...]

	def to_wire(self) -> dict[str, Any]:
		return {"fieldPath": self.field_path, "appendMissingElements": {"values": list(self.values)}}


@dataclass(frozen=True)
class RemoveAll:
	field_path: str
	values: tuple[WireValue, ...]

	def to_wire(self) -> dict[str, Any]:
		return {"fieldPath": self.field_path, "removeAllFromArray": {"values": list(self.values)}}


TransformOp = Union[Increment, AppendMissing, RemoveAll]


@dataclass(frozen=True)
class FieldTransform:
	document_path: str
	operations: tuple[TransformOp, ...]

	def to_write(self) -> dict[str, Any]:
		return {
			"transform": {
				"document": self.document_path,
				"fieldTransforms": [op.to_wire() for op in self.operations],
			}
		}


def build_increment(document_path: str, field_name: str, delta: int) -> FieldTransform:
	_check_document(document_path)
	_check_field(field_name)
	if isinstance(delta, bool) or not isinstance(delta, int):
		raise InvalidArgument(f"delta must be an integer, got {delta!r}")
	if not INT64_MIN <= delta <= INT64_MAX:
		raise InvalidArgument(f"delta {delta} is outside the 64-bit integer range")
	return FieldTransform(document_path, (Increment(field_name, delta),))


def build_array_add(document_path: str, field_name: str, values: Sequence[Any]) -> FieldTransform:
	"""Append each value unless the array already holds an equal element."""
	_check_document(document_path)
	_check_field(field_name)
	encoded = tuple(encode_value(v) for v in values)
	return FieldTransform(document_path, (AppendMissing(field_name, encoded),))


def build_array_remove(document_path: str, field_name: str, values: Sequence[Any]) -> FieldTransform:
	_check_document(document_path)
	_check_field(field_name)
	encoded = tuple(encode_value(v) for v in values)
	return FieldTransform(document_path, (RemoveAll(field_name, encoded),))


def combine(*transforms: FieldTransform) -> FieldTransform:
	"""Merge transforms on the same document into one write, keeping operation order."""
	if not transforms:
		raise InvalidArgument("nothing to combine")
	paths = {t.document_path for t in transforms}
	if len(paths) > 1:
		raise InvalidArgument(f"cannot combine transforms on different documents: {sorted(paths)}")
	operations = tuple(op for t in transforms for op in t.operations)
	return FieldTransform(transforms[0].document_path, operations)


def build_comment_like(project_id: str, game_id: str, comment_id: str, user_id: str) -> FieldTransform:
	path = document_path(project_id, "games", game_id, "comments", comment_id)
	return combine(
		build_increment(path, "likeCount", 1),
		build_array_add(path, "likedBy", [user_id]),
	)


def build_comment_unlike(project_id: str, game_id: str, comment_id: str, user_id: str) -> FieldTransform:
	path = document_path(project_id, "games", game_id, "comments", comment_id)
	return combine(
		build_increment(path, "likeCount", -1),
		build_array_remove(path, "likedBy", [user_id]),
	)


def commit_body(*transforms: FieldTransform) -> dict[str, Any]:
	return {"writes": [t.to_write() for t in transforms]}
