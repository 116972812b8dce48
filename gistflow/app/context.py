# gistflow/app/context.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from gistflow.app.documents import DEFAULT_DOCUMENT


@dataclass(frozen=True)
class StartupQuery:
    """
    Query parameters read once at startup. ``code`` triggers an immediate
    authorization attempt, ``gist`` an immediate fetch; ``layout`` is only
    carried along for the caller.
    """

    code: Optional[str] = None
    gist: Optional[str] = None
    layout: Optional[str] = None
    extra: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, query_string: str) -> "StartupQuery":
        """
        Parse ``?code=..&gist=..`` (leading ``?`` optional). Blank values count as absent
        and the last occurrence of a repeated key wins.
        """
        params: Dict[str, str] = {}
        for key, value in parse_qsl(query_string.lstrip("?"), keep_blank_values=True):
            params[key] = value
        known = {key: params.pop(key).strip() or None for key in ("code", "gist", "layout") if key in params}
        return cls(extra=params, **known)


@dataclass(frozen=True)
class AppContext:
    """
    Data threaded through every transition of the app machine. Instances are
    immutable; assign actions return updated copies via :meth:`update`.
    """

    query: StartupQuery = field(default_factory=StartupQuery)
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    document: str = DEFAULT_DOCUMENT
    gist_id: Optional[str] = None
    # Saving deferred until authorization.
    pending_save: bool = False
    pending_document: Optional[str] = None
    # Set when the linked gist failed to load; saves are refused until the next fetch.
    fetch_failed: bool = False

    @classmethod
    def initial(cls, query: Optional[StartupQuery] = None, token: Optional[str] = None) -> "AppContext":
        query = query or StartupQuery()
        return cls(query=query, token=token, gist_id=query.gist)

    def update(self, **changes: Any) -> "AppContext":
        return replace(self, **changes)
