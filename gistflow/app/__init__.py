# gistflow/app/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from gistflow.app.bridge import AuthCodeMailbox, ExternalActorBridge
from gistflow.app.context import AppContext, StartupQuery
from gistflow.app.documents import DEFAULT_DOCUMENT, UNAUTHENTICATED_DOCUMENT, validate_document
from gistflow.app.machine import CODE, FETCH, LOGIN, LOGOUT, SAVE, create_app_interpreter, create_app_machine
from gistflow.app.notifications import LoggingNotificationSink
from gistflow.app.services import AppServices, Notification, QueryString

__all__ = [
    "AppContext",
    "AppServices",
    "AuthCodeMailbox",
    "CODE",
    "DEFAULT_DOCUMENT",
    "ExternalActorBridge",
    "FETCH",
    "LOGIN",
    "LOGOUT",
    "LoggingNotificationSink",
    "Notification",
    "QueryString",
    "SAVE",
    "StartupQuery",
    "UNAUTHENTICATED_DOCUMENT",
    "create_app_interpreter",
    "create_app_machine",
    "validate_document",
]
