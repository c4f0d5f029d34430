# Calls to the identity provider, GIF search and the generative-AI stream
import logging

import httpx

from settings import Settings

logger = logging.getLogger("gateway.integrations")

GENERATION_CONFIG = {
	"thinkingConfig": {
		"thinkingLevel": "high",
		"includeThoughts": True,
	},
	"temperature": 0.7,
	"maxOutputTokens": 8192,
}


async def _post_json(client: httpx.AsyncClient, url: str, params: dict, body: dict) -> dict:
	response = await client.post(url, params=params, json=body)
	try:
		data = response.json()
	except ValueError:
		raise RuntimeError(f"Non-JSON response from {response.url.host} ({response.status_code})")
	if not isinstance(data, dict):
		raise RuntimeError(f"Unexpected response from {response.url.host}")
	return data


async def sign_up_anonymous(client: httpx.AsyncClient, settings: Settings) -> dict:
	return await _post_json(
		client,
		f"{settings.identity_url}/accounts:signUp",
		{"key": settings.firebase_api_key},
		{"returnSecureToken": True},
	)


async def sign_up_email(client: httpx.AsyncClient, settings: Settings, email: str, password: str) -> dict:
	return await _post_json(
		client,
		f"{settings.identity_url}/accounts:signUp",
		{"key": settings.firebase_api_key},
		{"email": email, "password": password, "returnSecureToken": True},
	)


async def sign_in_email(client: httpx.AsyncClient, settings: Settings, email: str, password: str) -> dict:
	return await _post_json(
		client,
		f"{settings.identity_url}/accounts:signInWithPassword",
		{"key": settings.firebase_api_key},
		{"email": email, "password": password, "returnSecureToken": True},
	)


async def gif_featured(client: httpx.AsyncClient, settings: Settings) -> dict:
	response = await client.get(
		f"{settings.tenor_url}/featured",
		params={"key": settings.tenor_api_key, "limit": settings.gif_limit, "media_filter": "gif"},
	)
	return response.json()


async def gif_search(client: httpx.AsyncClient, settings: Settings, query: str) -> dict:
	response = await client.get(
		f"{settings.tenor_url}/search",
		params={"key": settings.tenor_api_key, "q": query, "limit": settings.gif_limit, "media_filter": "gif"},
	)
	return response.json()


def generation_payload(history: list) -> dict:
	return {"contents": history, "generationConfig": GENERATION_CONFIG}


async def open_generation_stream(client: httpx.AsyncClient, settings: Settings, history: list) -> httpx.Response:
	"""
	Start a server-sent-events generation request and return the open response.
	The caller owns the response and must close it (aclose) once the body is drained.
	"""
	request = client.build_request(
		"POST",
		f"{settings.gemini_url}/models/{settings.gemini_model}:streamGenerateContent",
		params={"key": settings.gemini_api_key, "alt": "sse"},
		json=generation_payload(history),
	)
	logger.debug(f"Opening generation stream on model {settings.gemini_model}")
	return await client.send(request, stream=True)
