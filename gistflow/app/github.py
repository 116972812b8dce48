# gistflow/app/github.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
GitHub-backed collaborators: the OAuth code exchange and identity lookup,
gist storage, and a prompter opening the authorize page in a browser.
Every failure surfaces as a WorkflowError subclass so the machine can route it.
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from gistflow.config import Settings, get_settings
from gistflow.core.errors import AuthExchangeError, DocumentFetchError, DocumentSaveError, IdentityLookupError

logger = logging.getLogger(__name__)


def _auth_headers(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"token {token}"} if token else {}


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return fallback


class _GitHubApi:
    """Shared httpx client handling for the GitHub adapters."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        """
        :param settings: Endpoints and timeout; defaults to environment settings.
        :param client: Preconfigured client, e.g. one built on ``httpx.MockTransport``.
        """
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    def _api(self, path: str) -> str:
        return f"{self._settings.api_url.rstrip('/')}/{path.lstrip('/')}"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class GitHubIdentityProvider(_GitHubApi):
    """Exchanges OAuth codes through the exchange service and looks up the user."""

    async def exchange_code(self, code: str) -> str:
        try:
            response = await self._client.get(self._settings.auth_exchange_url, params={"code": code})
        except httpx.HTTPError as exc:
            raise AuthExchangeError("unauthorized") from exc
        if not response.is_success:
            logger.info("Code exchange rejected with status %s", response.status_code)
            raise AuthExchangeError("unauthorized")
        try:
            data = response.json()
        except ValueError as exc:
            raise AuthExchangeError("unauthorized") from exc
        if data.get("error") or not data.get("access_token"):
            raise AuthExchangeError("expired code")
        return data["access_token"]

    async def get_user(self, token: str) -> Dict[str, Any]:
        try:
            response = await self._client.get(self._api("/user"), headers=_auth_headers(token))
        except httpx.HTTPError as exc:
            raise IdentityLookupError("Unable to get user") from exc
        if not response.is_success:
            raise IdentityLookupError("Unable to get user")
        return response.json()


class GitHubGistStore(_GitHubApi):
    """Stores documents as a single file inside a gist."""

    def _payload(self, content: str) -> Dict[str, Any]:
        return {
            "description": self._settings.gist_description,
            "files": {self._settings.gist_filename: {"content": content}},
        }

    async def fetch_document(self, document_id: str) -> str:
        try:
            response = await self._client.get(self._api(f"/gists/{document_id}"))
        except httpx.HTTPError as exc:
            raise DocumentFetchError(f"Unable to fetch gist {document_id}") from exc
        if not response.is_success:
            raise DocumentFetchError(_error_message(response, "Not Found"))

        files = response.json().get("files") or {}
        document = files.get(self._settings.gist_filename)
        if not document:
            raise DocumentFetchError(f"Gist {document_id} has no {self._settings.gist_filename}")
        return document.get("content", "")

    async def save_document(self, token: str, content: str, document_id: Optional[str] = None) -> str:
        """
        Update the gist ``document_id`` or, without one, create a new gist.

        :return: Id of the saved gist.
        :raises DocumentSaveError: With GitHub's message on update, a generic one on create.
        """
        if document_id:
            request = self._client.patch(
                self._api(f"/gists/{document_id}"), json=self._payload(content), headers=_auth_headers(token)
            )
            fallback = "Unable to save gist"
        else:
            request = self._client.post(self._api("/gists"), json=self._payload(content), headers=_auth_headers(token))
            fallback = "Unable to post gist"

        try:
            response = await request
        except httpx.HTTPError as exc:
            raise DocumentSaveError(fallback) from exc
        if not response.is_success:
            message = _error_message(response, fallback) if document_id else fallback
            raise DocumentSaveError(message)

        saved_id = response.json().get("id") or document_id
        logger.info("Saved gist %s", saved_id)
        return saved_id


class BrowserAuthorizationPrompter:
    """Opens the GitHub OAuth authorize page; the code comes back through the bridge."""

    def __init__(self, settings: Optional[Settings] = None, opener: Callable[[str], Any] = webbrowser.open) -> None:
        self._settings = settings or get_settings()
        self._opener = opener

    @property
    def url(self) -> str:
        query = urlencode({"client_id": self._settings.oauth_client_id, "scope": self._settings.oauth_scope})
        return f"{self._settings.authorize_url}?{query}"

    def prompt(self) -> None:
        logger.info("Opening authorization page")
        self._opener(self.url)
