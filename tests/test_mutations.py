import pytest

from codec import INT64_MAX, INT64_MIN, InvalidArgument
from mutations import (
	AppendMissing,
	FieldTransform,
	Increment,
	RemoveAll,
	build_array_add,
	build_array_remove,
	build_comment_like,
	build_comment_unlike,
	build_increment,
	build_mask,
	combine,
	commit_body,
	mask_params,
)

GAME = "projects/p/databases/(default)/documents/games/g1"
COMMENT = "projects/p/databases/(default)/documents/games/g1/comments/c1"


class TestMask:
	def test_mask_is_exactly_the_top_level_keys(self):
		partial = {"displayName": "A", "stats": {"plays": 1}, "isVerified": True}
		mask = build_mask(partial)
		assert mask == ["displayName", "stats", "isVerified"]
		assert len(set(mask)) == len(mask)

	def test_nested_keys_are_not_flattened(self):
		assert build_mask({"creator": {"id": "u1", "name": "n"}}) == ["creator"]

	def test_empty(self):
		assert build_mask({}) == []

	def test_non_mapping(self):
		with pytest.raises(InvalidArgument):
			build_mask(["a"])

	def test_mask_params_repeat_the_parameter(self):
		assert mask_params(["a", "b"]) == [("updateMask.fieldPaths", "a"), ("updateMask.fieldPaths", "b")]


class TestTransforms:
	def test_increment_shape(self):
		transform = build_increment(GAME, "likeCount", 1)
		assert commit_body(transform) == {
			"writes": [
				{
					"transform": {
						"document": GAME,
						"fieldTransforms": [{"fieldPath": "likeCount", "increment": {"integerValue": "1"}}],
					}
				}
			]
		}

	def test_negative_increment(self):
		op = build_increment(GAME, "likeCount", -1).operations[0]
		assert op == Increment("likeCount", -1)
		assert op.to_wire()["increment"] == {"integerValue": "-1"}

	@pytest.mark.parametrize("delta", [INT64_MAX + 1, INT64_MIN - 1, 1.0, "1", True])
	def test_bad_delta(self, delta):
		with pytest.raises(InvalidArgument):
			build_increment(GAME, "likeCount", delta)

	def test_int64_bounds_are_accepted(self):
		assert build_increment(GAME, "n", INT64_MAX).operations[0].delta == INT64_MAX
		assert build_increment(GAME, "n", INT64_MIN).operations[0].delta == INT64_MIN

	@pytest.mark.parametrize("builder, args", [
		(build_increment, (1,)),
		(build_array_add, (["x"],)),
		(build_array_remove, (["x"],)),
	])
	def test_empty_field_name(self, builder, args):
		with pytest.raises(InvalidArgument):
			builder(GAME, "", *args)

	def test_empty_document_path(self):
		with pytest.raises(InvalidArgument):
			build_increment("", "likeCount", 1)

	def test_array_add_encodes_values(self):
		transform = build_array_add(GAME, "hashtags", ["fun", 2])
		assert transform.operations == (AppendMissing("hashtags", ({"stringValue": "fun"}, {"integerValue": "2"})),)
		assert transform.to_write()["transform"]["fieldTransforms"] == [
			{"fieldPath": "hashtags", "appendMissingElements": {"values": [{"stringValue": "fun"}, {"integerValue": "2"}]}}
		]

	def test_array_remove_encodes_values(self):
		transform = build_array_remove(GAME, "hashtags", ["fun"])
		assert transform.operations == (RemoveAll("hashtags", ({"stringValue": "fun"},)),)
		assert transform.to_write()["transform"]["fieldTransforms"] == [
			{"fieldPath": "hashtags", "removeAllFromArray": {"values": [{"stringValue": "fun"}]}}
		]

	def test_combine_keeps_order(self):
		combined = combine(build_increment(GAME, "a", 1), build_array_add(GAME, "b", ["x"]))
		assert isinstance(combined, FieldTransform)
		assert [op.field_path for op in combined.operations] == ["a", "b"]

	def test_combine_refuses_different_documents(self):
		with pytest.raises(InvalidArgument):
			combine(build_increment(GAME, "a", 1), build_increment(COMMENT, "a", 1))

	def test_combine_nothing(self):
		with pytest.raises(InvalidArgument):
			combine()

	def test_commit_body_has_one_write_per_transform(self):
		body = commit_body(build_increment(GAME, "a", 1), build_increment(COMMENT, "b", 1))
		assert [w["transform"]["document"] for w in body["writes"]] == [GAME, COMMENT]


class TestCommentLikes:
	def test_like_is_a_single_write(self):
		body = commit_body(build_comment_like("p", "g1", "c1", "u9"))
		assert body == {
			"writes": [
				{
					"transform": {
						"document": COMMENT,
						"fieldTransforms": [
							{"fieldPath": "likeCount", "increment": {"integerValue": "1"}},
							{"fieldPath": "likedBy", "appendMissingElements": {"values": [{"stringValue": "u9"}]}},
						],
					}
				}
			]
		}

	def test_unlike_mirrors_like(self):
		body = commit_body(build_comment_unlike("p", "g1", "c1", "u9"))
		assert len(body["writes"]) == 1
		assert body["writes"][0]["transform"]["fieldTransforms"] == [
			{"fieldPath": "likeCount", "increment": {"integerValue": "-1"}},
			{"fieldPath": "likedBy", "removeAllFromArray": {"values": [{"stringValue": "u9"}]}},
		]
