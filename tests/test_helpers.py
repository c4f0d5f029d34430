from datetime import datetime, timezone

import pytest

from codec import InvalidArgument
from helpers import (
	auth_error_message,
	build_analytics,
	calculate_growth,
	creator_stats,
	group_by_day,
	new_user_document,
	parse_timestamp,
	reject_non_finite,
	username_from_display_name,
)

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def test_auth_error_message():
	assert auth_error_message("WEAK_PASSWORD") == "Password should be at least 6 characters."
	assert auth_error_message(None) == "Authentication failed. Please try again."


def test_username_from_display_name():
	assert username_from_display_name("Ana B.") == "ana_b_"


def test_parse_timestamp():
	assert parse_timestamp("2024-06-01T10:00:00.000Z") == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
	assert parse_timestamp("2024-06-01T10:00:00") == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
	assert parse_timestamp("yesterday") is None
	assert parse_timestamp(None) is None


def test_guest_profile():
	user = new_user_document("abcdefgh", "https://avatars/png")
	assert user["username"] == "guest_abcdef"
	assert user["profilePicture"] == "https://avatars/png?seed=abcdefgh"
	assert "email" not in user


def test_creator_stats_ignores_malformed_entries():
	games = [
		{"creator": {"id": "u1"}, "likeCount": 2},
		{"creator": {"id": "u1"}, "likeCount": "lots"},
		{"creator": "u1", "likeCount": 50},
		{"likeCount": 9},
	]
	assert creator_stats(games, "u1") == (2, 2)


def test_group_by_day_covers_every_day():
	start = datetime(2024, 6, 28, 12, tzinfo=timezone.utc)
	items = [
		{"createdAt": "2024-06-29T08:00:00.000Z"},
		{"createdAt": "2024-06-29T09:00:00.000Z"},
		{"createdAt": "2024-06-01T09:00:00.000Z"},
		{"createdAt": None},
	]
	assert group_by_day(items, "createdAt", start, NOW) == [
		{"date": "2024-06-28", "count": 0},
		{"date": "2024-06-29", "count": 2},
		{"date": "2024-06-30", "count": 0},
	]


def test_growth():
	this_week = [{"createdAt": "2024-06-29T00:00:00Z"}] * 3
	last_week = [{"createdAt": "2024-06-20T00:00:00Z"}] * 2
	assert calculate_growth(this_week + last_week, "createdAt", NOW) == 50
	assert calculate_growth(this_week, "createdAt", NOW) == 100
	assert calculate_growth([], "createdAt", NOW) == 0
	assert calculate_growth(last_week, "createdAt", NOW) == -100


def test_build_analytics():
	games = [
		{"id": "a", "playCount": 1, "likeCount": 5, "hashtags": ["fun", "space"]},
		{"id": "b", "playCount": 7, "likeCount": 0, "hashtags": ["fun"]},
	]
	users = [{"id": "u1", "createdAt": "2024-06-29T00:00:00Z"}]
	data = build_analytics(users, games, now=NOW)
	assert data["totals"] == {"users": 1, "games": 2, "plays": 8, "likes": 5}
	assert [g["id"] for g in data["topGamesByLikes"]] == ["a", "b"]
	assert data["topHashtags"] == [{"tag": "fun", "count": 2}, {"tag": "space", "count": 1}]
	assert len(data["timeSeries"]["users"]) == 31
	assert data["growth"]["users"] == 100


def test_reject_non_finite_accepts_plain_values():
	reject_non_finite({"rating": 4.5, "tags": ["a", 1], "meta": {"n": None}})


@pytest.mark.parametrize("body, where", [
	({"rating": float("nan")}, "body.rating"),
	({"meta": {"score": float("inf")}}, "body.meta.score"),
	({"scores": [1.0, float("-inf")]}, r"body.scores\[1\]"),
])
def test_reject_non_finite(body, where):
	with pytest.raises(InvalidArgument, match=where):
		reject_non_finite(body)
