# gistflow/app/services.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Collaborators the app machine talks to. They are injected into the
interpreter as one AppServices object; nothing is reached through globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable
from urllib.parse import parse_qsl, urlencode


@dataclass(frozen=True)
class Notification:
    """Structured notification shown to the user."""

    message: str
    severity: str = "info"
    description: Optional[str] = None


def as_notification(value: Union[str, Notification]) -> Notification:
    """Normalize a plain message into a Notification."""
    if isinstance(value, Notification):
        return value
    return Notification(message=str(value))


@runtime_checkable
class IdentityProvider(Protocol):
    """
    Identity operations.

    - ``exchange_code`` turns an authorization code into a bearer token and
      raises AuthExchangeError on failure.
    - ``get_user`` returns the identity record for a token and raises
      IdentityLookupError on failure.
    """

    async def exchange_code(self, code: str) -> str:
        ...

    async def get_user(self, token: str) -> Dict[str, Any]:
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """
    Remote document storage.

    - ``fetch_document`` returns the content of a document id, raising
      DocumentFetchError when it cannot be found.
    - ``save_document`` updates ``document_id`` when given, creates a new
      document otherwise, and returns the document id. Raises DocumentSaveError.
    """

    async def fetch_document(self, document_id: str) -> str:
        ...

    async def save_document(self, token: str, content: str, document_id: Optional[str] = None) -> str:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Fire-and-forget user notifications; accepts a message or a Notification."""

    def notify(self, notification: Union[str, Notification]) -> None:
        ...


@runtime_checkable
class AuthorizationPrompter(Protocol):
    """Asks the user to authorize; the resulting code arrives out of band."""

    def prompt(self) -> None:
        ...


@runtime_checkable
class QueryUpdater(Protocol):
    """Receives query parameters the caller should persist (e.g. the new gist id)."""

    def update(self, params: Mapping[str, str]) -> None:
        ...


class QueryString:
    """In-memory QueryUpdater that merges updates into the current query string."""

    def __init__(self, query_string: str = "") -> None:
        self._params: Dict[str, str] = dict(parse_qsl(query_string.lstrip("?")))

    def update(self, params: Mapping[str, str]) -> None:
        for key, value in params.items():
            if value is None:
                self._params.pop(key, None)
            else:
                self._params[key] = value

    @property
    def params(self) -> Dict[str, str]:
        return dict(self._params)

    def __str__(self) -> str:
        return "?" + urlencode(self._params) if self._params else ""


class NullPrompter:
    """Prompter for headless use: authorization codes are delivered by other means."""

    def prompt(self) -> None:
        return None


@dataclass
class AppServices:
    """Bundle handed to the interpreter and from there to effects and invocations."""

    identity: IdentityProvider
    documents: DocumentStore
    notifications: NotificationSink
    prompter: AuthorizationPrompter = field(default_factory=NullPrompter)
    query: QueryUpdater = field(default_factory=QueryString)
