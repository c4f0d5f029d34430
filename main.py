from fastapi import FastAPI, HTTPException, Depends, Body, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Any
from pydantic import BaseModel
import asyncio
import aiosqlite
import httpx
import yaml
import logging
import logging.config

import integrations
from codec import InvalidArgument
from helpers import (
	NOTIFICATIONS,
	auth_error_message,
	build_analytics,
	creator_stats,
	new_comment,
	new_user_document,
	now_iso,
	reject_non_finite,
)
from moderation import init_db, list_actions, record_action
from mutations import build_comment_like, build_comment_unlike, build_increment
from settings import Settings, load_settings
from store import DocumentStore, StoreError


def init_logger(config_path: str = "logger_config.yaml") -> logging.Logger:
	try:
		with open(config_path, "r") as f:
			config = yaml.safe_load(f)
		logging.config.dictConfig(config)
		logger = logging.getLogger("gateway")
		logger.debug("Logger configured")
		return logger
	except Exception as e:
		logging.basicConfig(level=logging.INFO)
		logger = logging.getLogger("gateway")
		logger.error(f"Logger initialization failed: {e}")
		return logger


@asynccontextmanager
async def lifespan(app: FastAPI):
	settings = load_settings()
	app.state.settings = settings
	app.state.logger = init_logger(settings.log_config_path)
	logger = app.state.logger

	if not settings.app_secret:
		logger.warning("APP_SECRET is empty, every request will be rejected")
	if not settings.admin_password:
		logger.warning("ADMIN_PASSWORD not set, admin routes only check the app secret")

	count = await init_db(settings.database_path)
	logger.info(f"Moderation log ready ({count} entries)")

	app.state.http = httpx.AsyncClient(timeout=settings.http_timeout)
	logger.info(f"Gateway started for project {settings.firebase_project_id!r}")

	yield

	await app.state.http.aclose()
	logger.info("Application shutdown")


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def get_http(request: Request) -> httpx.AsyncClient:
	return request.app.state.http


def get_store(
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
) -> DocumentStore:
	return DocumentStore(settings, http)


async def get_db(settings: Settings = Depends(get_settings)):
	async with aiosqlite.connect(settings.database_path) as db:
		db.row_factory = aiosqlite.Row
		yield db


async def require_app_secret(
	settings: Settings = Depends(get_settings),
	app_secret: str | None = Header(None, alias="App-Secret"),
):
	if not settings.app_secret or app_secret != settings.app_secret:
		raise HTTPException(status_code=401, detail="Unauthorized")


async def require_admin(
	settings: Settings = Depends(get_settings),
	admin_auth: str | None = Header(None, alias="Admin-Auth"),
):
	if settings.admin_password and admin_auth != settings.admin_password:
		raise HTTPException(status_code=401, detail="Admin authentication required")


app = FastAPI(
	title="Plai Gateway",
	version="0.1",
	description="Proxy for the document store, identity, GIF search and generation services",
	lifespan=lifespan,
	dependencies=[Depends(require_app_secret)],
)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
	allow_headers=["Content-Type", "App-Secret", "Authorization", "Admin-Auth"],
	max_age=86400,
)

# Errors already turned into a response shape; route handlers let them through
KNOWN_ERRORS = (HTTPException, StoreError, InvalidArgument)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
	return JSONResponse(
		{"error": True, "message": exc.detail},
		status_code=exc.status_code,
		headers=getattr(exc, "headers", None),
	)


@app.exception_handler(StoreError)
async def store_error(request: Request, exc: StoreError):
	return JSONResponse({"error": True, "message": str(exc)}, status_code=exc.status_code)


@app.exception_handler(InvalidArgument)
async def invalid_argument(request: Request, exc: InvalidArgument):
	return JSONResponse({"error": True, "message": str(exc)}, status_code=400)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
	app.state.logger.exception(f"Unhandled error on {request.method} {request.url.path}")
	return JSONResponse({"error": True, "message": str(exc)}, status_code=500)


class GenerateRequest(BaseModel):
	history: list[Any] = []


class SignUpRequest(BaseModel):
	email: str
	password: str
	displayName: str | None = None


class SignInRequest(BaseModel):
	email: str
	password: str


class CommentRequest(BaseModel):
	userId: str
	text: str
	parentId: str | None = None


class CommentLikeRequest(BaseModel):
	userId: str


class FeatureRequest(BaseModel):
	isFeatured: bool


class FlagRequest(BaseModel):
	isFlagged: bool


class ModerationActionRequest(BaseModel):
	gameId: str
	action: str
	reason: str = ""


# ---- Generation

@app.post("/")
@app.post("/generate")
async def generate(
	body: GenerateRequest,
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
):
	logger = app.state.logger
	try:
		upstream = await integrations.open_generation_stream(http, settings, body.history)
	except httpx.HTTPError as e:
		logger.error(f"Generation request failed: {e}")
		raise HTTPException(status_code=502, detail="Generation service unreachable")

	if upstream.status_code >= 400:
		error_text = (await upstream.aread()).decode(errors="replace")
		await upstream.aclose()
		return JSONResponse({"error": error_text}, status_code=upstream.status_code)

	return StreamingResponse(
		upstream.aiter_raw(),
		media_type="text/event-stream",
		headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
		background=BackgroundTask(upstream.aclose),
	)


# ---- GIF search

@app.get("/tenor/featured")
async def tenor_featured(
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
):
	logger = app.state.logger
	try:
		return await integrations.gif_featured(http, settings)
	except Exception:
		logger.exception("Error fetching featured GIFs")
		raise HTTPException(status_code=502, detail="Failed to fetch GIFs")


@app.get("/tenor/search")
async def tenor_search(
	q: str = "",
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
):
	logger = app.state.logger
	try:
		return await integrations.gif_search(http, settings, q)
	except Exception:
		logger.exception("Error searching GIFs")
		raise HTTPException(status_code=502, detail="Failed to search GIFs")


# ---- Auth

@app.post("/auth/guest")
async def guest_login(
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
	store: DocumentStore = Depends(get_store),
):
	logger = app.state.logger
	try:
		data = await integrations.sign_up_anonymous(http, settings)
		uid = data.get("localId")
		if uid:
			await store.update(f"users/{uid}", new_user_document(uid, settings.avatar_url), masked=False)
			logger.info(f"Guest account created: {uid}")
		return data
	except KNOWN_ERRORS:
		raise
	except Exception:
		logger.exception("Error creating guest account")
		raise HTTPException(status_code=500, detail="Failed to create guest account")


@app.post("/auth/signup")
async def email_sign_up(
	body: SignUpRequest,
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
	store: DocumentStore = Depends(get_store),
):
	logger = app.state.logger
	try:
		data = await integrations.sign_up_email(http, settings, body.email, body.password)
		if data.get("error"):
			code = data["error"].get("message") if isinstance(data["error"], dict) else None
			raise HTTPException(status_code=400, detail=auth_error_message(code))

		uid = data.get("localId")
		if uid:
			user = new_user_document(uid, settings.avatar_url, email=body.email, display_name=body.displayName)
			await store.update(f"users/{uid}", user, masked=False)
			logger.info(f"Account created: {uid}")

		return {
			"uid": uid,
			"email": data.get("email"),
			"idToken": data.get("idToken"),
			"refreshToken": data.get("refreshToken"),
		}
	except KNOWN_ERRORS:
		raise
	except Exception:
		logger.exception("Error signing up")
		raise HTTPException(status_code=500, detail="Failed to sign up")


@app.post("/auth/signin")
async def email_sign_in(
	body: SignInRequest,
	settings: Settings = Depends(get_settings),
	http: httpx.AsyncClient = Depends(get_http),
	store: DocumentStore = Depends(get_store),
):
	logger = app.state.logger
	try:
		data = await integrations.sign_in_email(http, settings, body.email, body.password)
		if data.get("error"):
			code = data["error"].get("message") if isinstance(data["error"], dict) else None
			raise HTTPException(status_code=400, detail=auth_error_message(code))

		uid = data.get("localId")
		user = await store.get(f"users/{uid}") if uid else None
		return {
			"uid": uid,
			"email": data.get("email"),
			"idToken": data.get("idToken"),
			"refreshToken": data.get("refreshToken"),
			"user": user,
		}
	except KNOWN_ERRORS:
		raise
	except Exception:
		logger.exception("Error signing in")
		raise HTTPException(status_code=500, detail="Failed to sign in")


# ---- Games

@app.post("/games")
async def create_game(
	game: dict[str, Any] = Body(...),
	store: DocumentStore = Depends(get_store),
):
	logger = app.state.logger
	try:
		creator = game.get("creator") if isinstance(game.get("creator"), dict) else {}
		logger.info(f"Creating game {game.get('title')!r} by {creator.get('username')!r}")
		logger.debug(f"gameUrl length: {len(game.get('gameUrl') or '')}")
		reject_non_finite(game)
		return await store.create("games", game)
	except KNOWN_ERRORS:
		raise
	except Exception:
		logger.exception("Error creating game")
		raise HTTPException(status_code=500, detail="Failed to create game")


@app.get("/games")
async def get_games(
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	return {"games": await store.list_documents("games", settings.feed_page_size)}


async def count_game_action(game_id: str, action: str, store: DocumentStore) -> dict:
	field = "likeCount" if action == "like" else "playCount"
	await store.commit(build_increment(store.path("games", game_id), field, 1))
	return {"success": True, "action": action}


@app.post("/games/{game_id}/like")
async def like_game(game_id: str, store: DocumentStore = Depends(get_store)):
	return await count_game_action(game_id, "like", store)


@app.post("/games/{game_id}/view")
async def view_game(game_id: str, store: DocumentStore = Depends(get_store)):
	return await count_game_action(game_id, "view", store)


@app.get("/games/{game_id}/comments")
async def get_comments(
	game_id: str,
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	comments = await store.list_documents(f"games/{game_id}/comments", settings.comments_page_size)
	return {"comments": comments}


@app.post("/games/{game_id}/comments")
async def post_comment(
	game_id: str,
	body: CommentRequest,
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	logger = app.state.logger
	try:
		user = await store.get(f"users/{body.userId}")
		comment = new_comment(body.userId, body.text, user, settings.avatar_url, body.parentId)
		created = await store.create(f"games/{game_id}/comments", comment)
		await store.commit(build_increment(store.path("games", game_id), "commentCount", 1))
		return created
	except KNOWN_ERRORS:
		raise
	except Exception:
		logger.exception("Error posting comment")
		raise HTTPException(status_code=500, detail="Failed to post comment")


@app.post("/games/{game_id}/comments/{comment_id}/like")
async def like_comment(
	game_id: str,
	comment_id: str,
	body: CommentLikeRequest,
	store: DocumentStore = Depends(get_store),
):
	await store.commit(build_comment_like(store.project_id, game_id, comment_id, body.userId))
	return {"success": True}


@app.post("/games/{game_id}/comments/{comment_id}/unlike")
async def unlike_comment(
	game_id: str,
	comment_id: str,
	body: CommentLikeRequest,
	store: DocumentStore = Depends(get_store),
):
	await store.commit(build_comment_unlike(store.project_id, game_id, comment_id, body.userId))
	return {"success": True}


# ---- Users

@app.get("/users/{user_id}")
async def get_user(
	user_id: str,
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	user, games = await asyncio.gather(
		store.get(f"users/{user_id}"),
		store.list_documents("games", settings.admin_page_size),
	)
	if user is None:
		raise HTTPException(status_code=404, detail="User not found")
	user["gamesCount"], user["likesCount"] = creator_stats(games, user_id)
	return user


@app.patch("/users/{user_id}")
async def update_user(
	user_id: str,
	data: dict[str, Any] = Body(...),
	store: DocumentStore = Depends(get_store),
):
	reject_non_finite(data)
	return await store.update(f"users/{user_id}", data)


@app.get("/notifications")
async def get_notifications():
	return {"notifications": NOTIFICATIONS}


# ---- Admin

@app.get("/admin/users", dependencies=[Depends(require_admin)])
async def admin_get_users(
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	return {"users": await store.list_documents("users", settings.admin_page_size)}


async def set_ban(user_id: str, banned: bool, store: DocumentStore, db: aiosqlite.Connection) -> dict:
	user = await store.update(
		f"users/{user_id}",
		{"isBanned": banned, "bannedAt": now_iso() if banned else None},
	)
	await record_action(db, "ban" if banned else "unban", "user", user_id)
	app.state.logger.info(f"User {user_id} {'banned' if banned else 'unbanned'}")
	return user


@app.post("/admin/users/{user_id}/ban", dependencies=[Depends(require_admin)])
async def admin_ban_user(
	user_id: str,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	return await set_ban(user_id, True, store, db)


@app.post("/admin/users/{user_id}/unban", dependencies=[Depends(require_admin)])
async def admin_unban_user(
	user_id: str,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	return await set_ban(user_id, False, store, db)


@app.get("/admin/games", dependencies=[Depends(require_admin)])
async def admin_get_games(
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	return {"games": await store.list_documents("games", settings.admin_page_size)}


@app.delete("/admin/games/{game_id}", dependencies=[Depends(require_admin)])
async def admin_delete_game(
	game_id: str,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	await store.delete(f"games/{game_id}")
	await record_action(db, "delete", "game", game_id)
	return {"success": True}


@app.patch("/admin/games/{game_id}/feature", dependencies=[Depends(require_admin)])
async def admin_feature_game(
	game_id: str,
	body: FeatureRequest,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	game = await store.update(f"games/{game_id}", {"isFeatured": body.isFeatured})
	await record_action(db, "feature" if body.isFeatured else "unfeature", "game", game_id)
	return game


@app.patch("/admin/games/{game_id}/flag", dependencies=[Depends(require_admin)])
async def admin_flag_game(
	game_id: str,
	body: FlagRequest,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	game = await store.update(f"games/{game_id}", {"isFlagged": body.isFlagged})
	await record_action(db, "flag" if body.isFlagged else "unflag", "game", game_id)
	return game


@app.patch("/admin/games/{game_id}", dependencies=[Depends(require_admin)])
async def admin_update_game(
	game_id: str,
	data: dict[str, Any] = Body(...),
	store: DocumentStore = Depends(get_store),
):
	reject_non_finite(data)
	return await store.update(f"games/{game_id}", data)


@app.get("/admin/moderation/queue", dependencies=[Depends(require_admin)])
async def admin_moderation_queue(
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	games = await store.list_documents("games", settings.feed_page_size)
	return {"queue": [g for g in games if g.get("isFlagged") is True]}


@app.post("/admin/moderation/action", dependencies=[Depends(require_admin)])
async def admin_moderation_action(
	body: ModerationActionRequest,
	store: DocumentStore = Depends(get_store),
	db: aiosqlite.Connection = Depends(get_db),
):
	logger = app.state.logger
	path = f"games/{body.gameId}"
	if body.action == "approve":
		await store.update(path, {"isFlagged": False})
	elif body.action == "flag":
		await store.update(path, {"isFlagged": True})
	elif body.action == "remove":
		await store.delete(path)
	else:
		raise HTTPException(status_code=400, detail=f"Unknown moderation action: {body.action}")

	entry = await record_action(db, body.action, "game", body.gameId, body.reason)
	logger.info(f"Moderation action {body.action} on game {body.gameId}")
	return {"success": True, "entry": entry}


@app.get("/admin/moderation/log", dependencies=[Depends(require_admin)])
async def admin_moderation_log(limit: int = 100, db: aiosqlite.Connection = Depends(get_db)):
	return {"log": await list_actions(db, limit)}


@app.get("/admin/analytics", dependencies=[Depends(require_admin)])
async def admin_analytics(
	settings: Settings = Depends(get_settings),
	store: DocumentStore = Depends(get_store),
):
	users, games = await asyncio.gather(
		store.list_documents("users", settings.admin_page_size),
		store.list_documents("games", settings.admin_page_size),
	)
	return build_analytics(users, games)
