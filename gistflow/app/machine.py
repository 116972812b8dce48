# gistflow/app/machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
The credential-gated gist workflow.

Two regions run in parallel over one AppContext:

- ``auth``: checks for a code or token at startup, exchanges the code,
  looks up the user and, once authorized, dispatches saves to patch or post
  the gist. A save requested before authorization is queued and replayed
  exactly once when ``authorized`` is reached.
- ``document``: fetches the gist named at startup (or by ``GIST.FETCH``).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Union

from gistflow.app.context import AppContext, StartupQuery
from gistflow.app.documents import UNAUTHENTICATED_DOCUMENT, validate_document
from gistflow.app.services import AppServices, Notification
from gistflow.config import Settings, get_settings
from gistflow.core.actions import ActionTable, assign, effect, raise_event
from gistflow.core.definition import MachineDefinition
from gistflow.core.errors import AuthExchangeError, DocumentValidationError
from gistflow.core.events import Event
from gistflow.core.guards import GuardTable
from gistflow.runtime.interpreter import Interpreter

logger = logging.getLogger(__name__)

CODE = "CODE"
LOGIN = "LOGIN"
LOGOUT = "LOGOUT"
SAVE = "GIST.SAVE"
FETCH = "GIST.FETCH"

DocumentValidator = Callable[[object], None]

_QUEUE_SAVE = {"actions": ["queue_save"]}


def build_config(saved_indicator_delay: int = 1000) -> Dict[str, Any]:
    """Declarative structure of the app machine."""
    return {
        "id": "app",
        "type": "parallel",
        "states": {
            "auth": {
                "initial": "checkingCode",
                "on": {LOGIN: ".pendingAuthorization"},
                "states": {
                    "checkingCode": {
                        "always": [
                            {"target": "authorizing", "guard": "has_code"},
                            {"target": "gettingUser", "guard": "has_token"},
                            {"target": "unauthorized", "actions": ["reset_to_unauthenticated_document"]},
                        ],
                        "on": {SAVE: _QUEUE_SAVE},
                    },
                    "authorizing": {
                        "invoke": {
                            "id": "exchangeCode",
                            "src": "exchange_code",
                            "on_done": {"target": "gettingUser", "actions": ["store_token"]},
                            "on_error": {"target": "unauthorized", "actions": ["notify_auth_failure"]},
                        },
                        "on": {SAVE: _QUEUE_SAVE},
                    },
                    "gettingUser": {
                        "invoke": {
                            "id": "getUser",
                            "src": "get_user",
                            "on_done": {"target": "authorized", "actions": ["store_user"]},
                            "on_error": {"target": "unauthorized", "actions": ["log_identity_failure"]},
                        },
                        "on": {SAVE: _QUEUE_SAVE},
                    },
                    "authorized": {
                        "type": "parallel",
                        "on": {LOGOUT: {"target": "unauthorized", "actions": ["clear_credentials"]}},
                        "states": {
                            "user": {},
                            "gist": {
                                "initial": "idle",
                                "always": {
                                    "guard": "save_pending",
                                    "actions": ["replay_pending_save", "clear_pending_save"],
                                },
                                "on": {
                                    SAVE: [
                                        {
                                            "target": ".idle",
                                            "guard": "document_invalid",
                                            "actions": ["notify_invalid_document"],
                                        },
                                        {"target": ".idle", "guard": "save_blocked", "actions": ["notify_save_blocked"]},
                                        {"target": ".patching", "guard": "has_gist_id"},
                                        {"target": ".posting"},
                                    ]
                                },
                                "states": {
                                    "idle": {
                                        "initial": "default",
                                        "states": {
                                            "default": {},
                                            "patched": {"after": {saved_indicator_delay: "default"}},
                                            "posted": {"after": {saved_indicator_delay: "default"}},
                                        },
                                    },
                                    "patching": {
                                        "invoke": {
                                            "id": "patchGist",
                                            "src": "patch_document",
                                            "on_done": {"target": "idle.patched", "actions": ["notify_saved"]},
                                            "on_error": {"target": "idle", "actions": ["notify_save_failure"]},
                                        }
                                    },
                                    "posting": {
                                        "invoke": {
                                            "id": "postGist",
                                            "src": "post_document",
                                            "on_done": {
                                                "target": "idle.posted",
                                                "actions": ["store_gist_id", "notify_created", "publish_gist_id"],
                                            },
                                            "on_error": {"target": "idle", "actions": ["notify_save_failure"]},
                                        }
                                    },
                                },
                            },
                        },
                    },
                    "unauthorized": {
                        "on": {
                            LOGIN: "pendingAuthorization",
                            SAVE: {"target": "pendingAuthorization", "actions": ["queue_save"]},
                        }
                    },
                    "pendingAuthorization": {
                        "entry": ["prompt_authorization"],
                        "on": {CODE: "authorizing", SAVE: _QUEUE_SAVE},
                    },
                },
            },
            "document": {
                "initial": "checking",
                "on": {
                    FETCH: {"target": ".fetching", "guard": "has_requested_gist", "actions": ["navigate_to_gist"]}
                },
                "states": {
                    "checking": {
                        "always": [
                            {"target": "fetching", "guard": "has_gist_id"},
                            {"target": "idle"},
                        ]
                    },
                    "idle": {},
                    "fetching": {
                        "invoke": {
                            "id": "fetchGist",
                            "src": "fetch_document",
                            "on_done": {"target": "loaded", "actions": ["store_document"]},
                            "on_error": {"target": "idle", "actions": ["forget_gist", "notify_not_found"]},
                        }
                    },
                    "loaded": {"entry": ["notify_loaded"]},
                },
            },
        },
    }


def build_guards(validate: DocumentValidator = validate_document) -> GuardTable:
    guards = GuardTable()

    guards.add("has_code", lambda ctx, e: bool(ctx.query.code))
    guards.add("has_token", lambda ctx, e: bool(ctx.token))
    guards.add("has_gist_id", lambda ctx, e: bool(ctx.gist_id))
    guards.add("save_pending", lambda ctx, e: ctx.pending_save)
    guards.add("save_blocked", lambda ctx, e: ctx.fetch_failed)
    guards.add("has_requested_gist", lambda ctx, e: bool(e.get("gist")))

    @guards.register("document_invalid")
    def document_invalid(ctx: AppContext, e: Event) -> bool:
        try:
            validate(e.get("code"))
        except DocumentValidationError:
            return True
        return False

    return guards


def _error_text(e: Event) -> str:
    error = e.get("error")
    return str(error) if error is not None else "unknown error"


def build_actions(validate: DocumentValidator = validate_document) -> ActionTable:
    def notify(message: Union[str, Notification]) -> Callable[[AppContext, Event, AppServices], None]:
        return lambda ctx, e, services: services.notifications.notify(message)

    def notify_invalid_document(ctx: AppContext, e: Event, services: AppServices) -> None:
        try:
            validate(e.get("code"))
        except DocumentValidationError as error:
            description = str(error)
        else:
            description = None
        services.notifications.notify(
            Notification(message="Failed to save machine", severity="error", description=description)
        )

    def log_identity_failure(ctx: AppContext, e: Event, services: AppServices) -> None:
        logger.info("User lookup failed: %s", _error_text(e))

    return ActionTable(
        {
            "reset_to_unauthenticated_document": assign(
                lambda ctx, e: ctx.update(document=UNAUTHENTICATED_DOCUMENT)
            ),
            "store_token": assign(lambda ctx, e: ctx.update(token=e.get("result"))),
            "store_user": assign(lambda ctx, e: ctx.update(user=e.get("result"))),
            "clear_credentials": assign(lambda ctx, e: ctx.update(token=None, user=None)),
            "queue_save": assign(lambda ctx, e: ctx.update(pending_save=True, pending_document=e.get("code"))),
            "clear_pending_save": assign(lambda ctx, e: ctx.update(pending_save=False, pending_document=None)),
            "replay_pending_save": raise_event(lambda ctx, e: Event(SAVE, {"code": ctx.pending_document})),
            "store_gist_id": assign(lambda ctx, e: ctx.update(gist_id=e.get("result"))),
            "store_document": assign(lambda ctx, e: ctx.update(document=e.get("result"))),
            "forget_gist": assign(lambda ctx, e: ctx.update(gist_id=None, fetch_failed=True)),
            "navigate_to_gist": assign(lambda ctx, e: ctx.update(gist_id=e.get("gist"), fetch_failed=False)),
            "prompt_authorization": effect(lambda ctx, e, services: services.prompter.prompt()),
            "publish_gist_id": effect(lambda ctx, e, services: services.query.update({"gist": ctx.gist_id})),
            "notify_auth_failure": effect(lambda ctx, e, services: services.notifications.notify(_error_text(e))),
            "log_identity_failure": effect(log_identity_failure),
            "notify_invalid_document": effect(notify_invalid_document),
            "notify_save_blocked": effect(
                notify(
                    Notification(
                        message="Unable to save machine",
                        severity="error",
                        description="The linked gist could not be loaded. Open a gist before saving.",
                    )
                )
            ),
            "notify_save_failure": effect(
                lambda ctx, e, services: services.notifications.notify(
                    Notification(message="Unable to save machine", severity="error", description=_error_text(e))
                )
            ),
            "notify_saved": effect(notify("Gist saved!")),
            "notify_created": effect(notify("Gist created!")),
            "notify_not_found": effect(notify("Gist not found.")),
            "notify_loaded": effect(notify("Gist loaded!")),
        }
    )


async def exchange_code(ctx: AppContext, e: Event, services: AppServices) -> str:
    code = e.get("code") or ctx.query.code
    if not code:
        raise AuthExchangeError("missing authorization code")
    return await services.identity.exchange_code(code)


async def get_user(ctx: AppContext, e: Event, services: AppServices) -> Dict[str, Any]:
    return await services.identity.get_user(ctx.token)


async def patch_document(ctx: AppContext, e: Event, services: AppServices) -> str:
    return await services.documents.save_document(ctx.token, e.get("code"), document_id=ctx.gist_id)


async def post_document(ctx: AppContext, e: Event, services: AppServices) -> str:
    return await services.documents.save_document(ctx.token, e.get("code"))


async def fetch_document(ctx: AppContext, e: Event, services: AppServices) -> str:
    return await services.documents.fetch_document(ctx.gist_id)


SOURCES = {
    "exchange_code": exchange_code,
    "get_user": get_user,
    "patch_document": patch_document,
    "post_document": post_document,
    "fetch_document": fetch_document,
}


def create_app_machine(
    settings: Optional[Settings] = None, validate: DocumentValidator = validate_document
) -> MachineDefinition:
    """
    Build the app machine definition.

    :param settings: Source of the saved-indicator delay; defaults to environment settings.
    :param validate: Structural document check used by the save dispatch.
    """
    settings = settings or get_settings()
    return MachineDefinition(
        build_config(settings.saved_indicator_delay),
        guards=build_guards(validate),
        actions=build_actions(validate),
        services=SOURCES,
    )


def create_app_interpreter(
    services: AppServices,
    query: Union[None, str, StartupQuery] = None,
    settings: Optional[Settings] = None,
    validate: DocumentValidator = validate_document,
) -> Interpreter:
    """
    Wire the app machine, its initial context and the injected services.

    :param services: Collaborators used by effects and invocations.
    :param query: Startup query string or parsed StartupQuery.
    :param settings: Settings; defaults to environment settings.
    :param validate: Structural document check used by the save dispatch.
    """
    settings = settings or get_settings()
    if isinstance(query, str):
        query = StartupQuery.parse(query)
    context = AppContext.initial(query, token=settings.test_token)
    return Interpreter(
        create_app_machine(settings, validate),
        context,
        services,
        time_unit=settings.time_unit_seconds,
        max_microsteps=settings.max_microsteps,
    )
