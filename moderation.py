"""
Audit log of admin moderation actions, kept in a local SQLite file.
"""
from pathlib import Path

import aiosqlite

from helpers import now_iso

ACTIONS = ("ban", "unban", "feature", "unfeature", "flag", "unflag", "approve", "remove", "delete")


async def init_db(db_path: str | Path) -> int:
	"""Create the log table if needed and return the number of stored entries."""
	Path(db_path).parent.mkdir(parents=True, exist_ok=True)
	async with aiosqlite.connect(db_path) as db:
		await db.execute("""
		CREATE TABLE IF NOT EXISTS moderation_log (
			id INTEGER PRIMARY KEY AUTOINCREMENT,
			action TEXT NOT NULL,
			target_type TEXT NOT NULL,
			target_id TEXT NOT NULL,
			reason TEXT,
			created_at TEXT NOT NULL
		)
		""")

		await db.execute("""
		CREATE INDEX IF NOT EXISTS idx_moderation_target
		ON moderation_log(target_type, target_id)
		""")

		await db.commit()

		cur = await db.execute("SELECT COUNT(*) FROM moderation_log")
		(count,) = await cur.fetchone()
		return count


async def record_action(
	db: aiosqlite.Connection,
	action: str,
	target_type: str,
	target_id: str,
	reason: str | None = None,
) -> dict:
	if action not in ACTIONS:
		raise ValueError(f"Unknown moderation action: {action}")
	created_at = now_iso()
	cur = await db.execute(
		"INSERT INTO moderation_log (action, target_type, target_id, reason, created_at) VALUES (?, ?, ?, ?, ?)",
		(action, target_type, target_id, reason or None, created_at),
	)
	await db.commit()
	return {
		"id": cur.lastrowid,
		"action": action,
		"targetType": target_type,
		"targetId": target_id,
		"reason": reason or None,
		"createdAt": created_at,
	}


async def list_actions(db: aiosqlite.Connection, limit: int = 100) -> list[dict]:
	cur = await db.execute("""
		SELECT id, action, target_type AS targetType, target_id AS targetId, reason, created_at AS createdAt
		FROM moderation_log
		ORDER BY id DESC
		LIMIT ?
	""", (limit,))
	return [dict(r) for r in await cur.fetchall()]
