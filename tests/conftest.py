import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app, get_http

PROJECT = "demo"
DOCS = f"/v1/projects/{PROJECT}/databases/(default)/documents"
APP_SECRET = "test-secret"
ADMIN_PASSWORD = "admin-pass"


class FakeUpstream:
	"""
	Stands in for every upstream service behind httpx.MockTransport.
	Responses are registered per (method, path); every request is recorded.
	"""

	def __init__(self):
		self.routes = {}
		self.requests = []

	def on(self, method: str, path: str, json_body=None, status: int = 200, content: bytes | None = None, headers=None):
		self.routes[(method, path)] = (status, json_body, content, headers)

	def __call__(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		key = (request.method, request.url.path)
		if key not in self.routes:
			return httpx.Response(404, json={"error": {"code": 404, "message": "not found", "status": "NOT_FOUND"}})
		status, json_body, content, headers = self.routes[key]
		if content is not None:
			return httpx.Response(status, content=content, headers=headers)
		return httpx.Response(status, json=json_body if json_body is not None else {}, headers=headers)

	def sent(self, method: str, path: str) -> list[httpx.Request]:
		return [r for r in self.requests if r.method == method and r.url.path == path]

	def body(self, method: str, path: str, index: int = -1):
		return json.loads(self.sent(method, path)[index].content)


def wire_doc(path: str, fields: dict) -> dict:
	return {"name": f"projects/{PROJECT}/databases/(default)/documents/{path}", "fields": fields}


@pytest.fixture
def upstream():
	return FakeUpstream()


@pytest.fixture
def client(monkeypatch, tmp_path, upstream):
	monkeypatch.setenv("GATEWAY_CONFIG", str(tmp_path / "config.yaml"))
	monkeypatch.setenv("GATEWAY_LOG_CONFIG", str(tmp_path / "logger_config.yaml"))
	monkeypatch.setenv("GATEWAY_DATABASE_PATH", str(tmp_path / "moderation.db"))
	monkeypatch.setenv("APP_SECRET", APP_SECRET)
	monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
	monkeypatch.setenv("FIREBASE_PROJECT_ID", PROJECT)
	monkeypatch.setenv("FIREBASE_API_KEY", "fb-key")
	monkeypatch.setenv("GEMINI_API_KEY", "gm-key")
	monkeypatch.setenv("GEMINI_MODEL", "test-model")
	monkeypatch.setenv("TENOR_API_KEY", "gif-key")

	http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
	app.dependency_overrides[get_http] = lambda: http
	headers = {"App-Secret": APP_SECRET, "Admin-Auth": ADMIN_PASSWORD}
	try:
		with TestClient(app, headers=headers) as test_client:
			yield test_client
	finally:
		app.dependency_overrides.clear()
		asyncio.run(http.aclose())
