import logging
from collections.abc import Mapping
from typing import Any

import httpx

from codec import decode_document, decode_documents, document_path, encode_fields
from mutations import FieldTransform, build_mask, commit_body, mask_params
from settings import Settings

logger = logging.getLogger("gateway.store")


class StoreError(RuntimeError):
	def __init__(self, message: str, status_code: int = 500):
		super().__init__(message)
		self.status_code = status_code


class DocumentStore:
	"""
	Thin async client for the document database REST API.

	Paths passed in are relative to the documents root ("games", "games/g1/comments").
	Reads come back decoded; writes take plain dicts and encode them.
	"""

	def __init__(self, settings: Settings, client: httpx.AsyncClient):
		self.settings = settings
		self.client = client
		self.project_id = settings.firebase_project_id
		self.documents_url = (
			f"{settings.firestore_url}/projects/{self.project_id}/databases/(default)/documents"
		)

	def path(self, *segments: str) -> str:
		return document_path(self.project_id, *segments)

	async def _request(self, method: str, url: str, **kwargs) -> tuple[int, dict]:
		try:
			response = await self.client.request(method, url, **kwargs)
		except httpx.HTTPError as e:
			logger.error(f"{method} {url} failed: {e}")
			raise StoreError(f"Document store unreachable: {e}", status_code=502)

		logger.debug(f"{method} {url} -> {response.status_code}")
		try:
			payload = response.json() if response.content else {}
		except ValueError:
			payload = {}
		if not isinstance(payload, dict):
			payload = {}
		return response.status_code, payload

	@staticmethod
	def _check(status: int, payload: dict, default: str) -> dict:
		error = payload.get("error")
		if error:
			message = error.get("message", default) if isinstance(error, Mapping) else str(error)
			raise StoreError(message, status_code=status if status >= 400 else 500)
		# error statuses without a JSON error body (proxies, outages)
		if status >= 400:
			raise StoreError(default, status_code=status)
		return payload

	async def get(self, path: str) -> dict | None:
		"""Decoded document, or None when the store has nothing at path."""
		status, payload = await self._request("GET", f"{self.documents_url}/{path}")
		if status == 404:
			return None
		self._check(status, payload, "Failed to read document")
		return decode_document(payload)

	async def list_documents(self, collection: str, page_size: int) -> list[dict]:
		status, payload = await self._request(
			"GET", f"{self.documents_url}/{collection}", params={"pageSize": page_size}
		)
		self._check(status, payload, "Failed to list documents")
		return decode_documents(payload)

	async def create(self, collection: str, data: Mapping[str, Any]) -> dict:
		status, payload = await self._request(
			"POST", f"{self.documents_url}/{collection}", json={"fields": encode_fields(data)}
		)
		self._check(status, payload, "Failed to create document")
		return decode_document(payload)

	async def update(self, path: str, data: Mapping[str, Any], masked: bool = True) -> dict:
		"""
		PATCH a document. With masked set, only the keys present in data are replaced;
		without it the whole document is overwritten (or created).
		A masked update with no keys changes nothing and just returns the stored document.
		"""
		params = None
		if masked:
			mask = build_mask(data)
			# no mask at all would replace the whole document
			if not mask:
				return await self.get(path) or {}
			params = mask_params(mask)
		status, payload = await self._request(
			"PATCH", f"{self.documents_url}/{path}", params=params, json={"fields": encode_fields(data)}
		)
		self._check(status, payload, "Failed to update document")
		return decode_document(payload)

	async def delete(self, path: str) -> None:
		status, payload = await self._request("DELETE", f"{self.documents_url}/{path}")
		self._check(status, payload, "Failed to delete document")

	async def commit(self, *transforms: FieldTransform) -> dict:
		status, payload = await self._request(
			"POST", f"{self.documents_url}:commit", json=commit_body(*transforms)
		)
		return self._check(status, payload, "Failed to commit transform")
