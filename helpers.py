# Helper functions for the gateway routes
import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone

from codec import InvalidArgument, to_iso8601

AUTH_ERROR_MESSAGES = {
	"EMAIL_EXISTS": "This email is already registered. Please sign in.",
	"INVALID_EMAIL": "Please enter a valid email address.",
	"WEAK_PASSWORD": "Password should be at least 6 characters.",
	"EMAIL_NOT_FOUND": "No account found with this email.",
	"INVALID_PASSWORD": "Incorrect password. Please try again.",
	"INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
	"USER_DISABLED": "This account has been disabled.",
	"TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
}

NOTIFICATIONS = [
	{
		"id": "1",
		"type": "like",
		"title": "Someone liked your game",
		"subtitle": "Your game got a new like!",
		"time": "2m",
		"icon": "favorite",
		"color": "#FE2C55",
	},
	{
		"id": "2",
		"type": "follow",
		"title": "New follower",
		"subtitle": "A new player started following you",
		"time": "15m",
		"icon": "person_add",
		"color": "#5576F8",
	},
	{
		"id": "3",
		"type": "play",
		"title": "Your game hit 100 plays!",
		"subtitle": "Keep up the great work!",
		"time": "1h",
		"icon": "sports_esports",
		"color": "#FF9500",
	},
]


def now_iso() -> str:
	return to_iso8601(datetime.now(timezone.utc))


def reject_non_finite(value, path: str = "body") -> None:
	"""Request bodies may not carry NaN or Infinity, responses could not echo them."""
	if isinstance(value, float) and not math.isfinite(value):
		raise InvalidArgument(f"{path} is not a finite number")
	if isinstance(value, dict):
		for key, item in value.items():
			reject_non_finite(item, f"{path}.{key}")
	elif isinstance(value, list):
		for i, item in enumerate(value):
			reject_non_finite(item, f"{path}[{i}]")


def parse_timestamp(value) -> datetime | None:
	if not isinstance(value, str) or not value:
		return None
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def auth_error_message(code) -> str:
	"""Friendly text for an identity provider error code."""
	return AUTH_ERROR_MESSAGES.get(code, "Authentication failed. Please try again.")


def username_from_display_name(display_name: str) -> str:
	return re.sub(r"[^a-z0-9]", "_", display_name.lower())


def avatar_url(base_url: str, seed: str) -> str:
	return f"{base_url}?seed={seed}"


def new_user_document(uid: str, avatar_base: str, email: str | None = None, display_name: str | None = None) -> dict:
	"""
	Initial profile for a freshly registered account.
	Without an email this is a guest profile.
	"""
	user = {}
	if email is not None:
		display_name = display_name or email.split("@")[0]
		user["email"] = email
		user["username"] = username_from_display_name(display_name)
		user["displayName"] = display_name
	else:
		user["username"] = f"guest_{uid[:6]}"
		user["displayName"] = "Guest Player"
	user.update({
		"profilePicture": avatar_url(avatar_base, uid),
		"isVerified": False,
		"followerCount": 0,
		"followingCount": 0,
		"likesCount": 0,
		"createdAt": now_iso(),
	})
	return user


def new_comment(user_id: str, text: str, user: dict | None, avatar_base: str, parent_id: str | None = None) -> dict:
	user = user or {}
	comment = {
		"userId": user_id,
		"username": user.get("username") or "Anonymous",
		"displayName": user.get("displayName") or "Anonymous",
		"profilePicture": user.get("profilePicture") or avatar_url(avatar_base, user_id),
		"text": text,
		"likeCount": 0,
		"createdAt": now_iso(),
	}
	if parent_id:
		comment["parentId"] = parent_id
	return comment


def _as_int(value) -> int:
	return value if isinstance(value, int) and not isinstance(value, bool) else 0


def creator_stats(games: list[dict], user_id: str) -> tuple[int, int]:
	"""Number of games created by user_id and the likes they collected."""
	own = [g for g in games if isinstance(g.get("creator"), dict) and g["creator"].get("id") == user_id]
	return len(own), sum(_as_int(g.get("likeCount")) for g in own)


def group_by_day(items: list[dict], field: str, start: datetime, now: datetime) -> list[dict]:
	days = {}
	day = start.date()
	while day <= now.date():
		days[day.isoformat()] = 0
		day += timedelta(days=1)

	for item in items:
		created = parse_timestamp(item.get(field))
		if created is None or created < start:
			continue
		key = created.date().isoformat()
		if key in days:
			days[key] += 1

	return [{"date": key, "count": count} for key, count in days.items()]


def calculate_growth(items: list[dict], field: str, now: datetime) -> int:
	"""Week-over-week change in percent."""
	week_ago = now - timedelta(days=7)
	two_weeks_ago = now - timedelta(days=14)

	stamps = [parse_timestamp(item.get(field)) for item in items]
	this_week = sum(1 for s in stamps if s is not None and s >= week_ago)
	last_week = sum(1 for s in stamps if s is not None and two_weeks_ago <= s < week_ago)

	if last_week == 0:
		return 100 if this_week > 0 else 0
	return round((this_week - last_week) / last_week * 100)


def build_analytics(users: list[dict], games: list[dict], now: datetime | None = None, days: int = 30) -> dict:
	now = now or datetime.now(timezone.utc)
	start = now - timedelta(days=days)

	by_plays = sorted(games, key=lambda g: _as_int(g.get("playCount")), reverse=True)
	by_likes = sorted(games, key=lambda g: _as_int(g.get("likeCount")), reverse=True)

	hashtags = Counter()
	for game in games:
		tags = game.get("hashtags")
		if isinstance(tags, list):
			hashtags.update(t for t in tags if isinstance(t, str))

	return {
		"totals": {
			"users": len(users),
			"games": len(games),
			"plays": sum(_as_int(g.get("playCount")) for g in games),
			"likes": sum(_as_int(g.get("likeCount")) for g in games),
		},
		"growth": {
			"users": calculate_growth(users, "createdAt", now),
			"games": calculate_growth(games, "createdAt", now),
		},
		"timeSeries": {
			"users": group_by_day(users, "createdAt", start, now),
			"games": group_by_day(games, "createdAt", start, now),
		},
		"topGamesByPlays": by_plays[:10],
		"topGamesByLikes": by_likes[:10],
		"topHashtags": [{"tag": tag, "count": count} for tag, count in hashtags.most_common(10)],
		"recentGames": games[:10],
		"recentUsers": users[:10],
	}
