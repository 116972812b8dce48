# gistflow/config.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Settings loaded from ``GISTFLOW_*`` environment variables, plus logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the gist workflow.

    Attributes:
        api_url: Base URL of the GitHub REST API.
        auth_exchange_url: Endpoint exchanging an OAuth code for a token.
        authorize_url: GitHub OAuth authorize page opened by the prompter.
        oauth_client_id: OAuth application client id.
        oauth_scope: OAuth scope requested.
        gist_filename: File inside the gist holding the document.
        gist_description: Description set on created gists.
        test_token: Bootstrap token; skips straight to identity lookup.
        time_unit_seconds: Seconds per machine delay unit.
        saved_indicator_delay: Delay, in units, before "patched"/"posted" revert.
        max_microsteps: Bound on chained eventless transitions per event.
        http_timeout_seconds: Timeout for GitHub calls.
        log_level: Level passed to configure_logging.
    """

    api_url: str = "https://api.github.com"
    auth_exchange_url: str = "http://xstate-gist.azurewebsites.net/api/GistPost"
    authorize_url: str = "https://github.com/login/oauth/authorize"
    oauth_client_id: str = "39c1ec91c4ed507f6e4c"
    oauth_scope: str = "gist"
    gist_filename: str = "machine.js"
    gist_description: str = "XState test"
    test_token: Optional[str] = None
    time_unit_seconds: float = 0.001
    saved_indicator_delay: int = 1000
    max_microsteps: int = 100
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    def validate(self) -> List[str]:
        """
        Check settings for consistency.

        Returns:
            List of problems, empty when valid.
        """
        errors: List[str] = []
        if self.time_unit_seconds <= 0:
            errors.append("GISTFLOW_TIME_UNIT_SECONDS must be > 0")
        if self.saved_indicator_delay < 0:
            errors.append("GISTFLOW_SAVED_INDICATOR_DELAY must be >= 0")
        if self.max_microsteps < 1:
            errors.append("GISTFLOW_MAX_MICROSTEPS must be >= 1")
        if self.http_timeout_seconds <= 0:
            errors.append("GISTFLOW_HTTP_TIMEOUT_SECONDS must be > 0")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"GISTFLOW_LOG_LEVEL must be one of {', '.join(sorted(VALID_LOG_LEVELS))}")
        if not self.gist_filename:
            errors.append("GISTFLOW_GIST_FILENAME must not be empty")
        return errors


def _read_optional_env(key: str) -> Optional[str]:
    """Return an optional env value, treating blank strings as unset."""
    raw_value = os.getenv(key)
    if raw_value is None:
        return None
    return raw_value.strip() or None


def load_settings_from_env() -> Settings:
    """Build Settings from ``GISTFLOW_*`` environment variables."""
    defaults = Settings()
    return Settings(
        api_url=os.getenv("GISTFLOW_API_URL", defaults.api_url).rstrip("/"),
        auth_exchange_url=os.getenv("GISTFLOW_AUTH_EXCHANGE_URL", defaults.auth_exchange_url),
        authorize_url=os.getenv("GISTFLOW_AUTHORIZE_URL", defaults.authorize_url),
        oauth_client_id=os.getenv("GISTFLOW_OAUTH_CLIENT_ID", defaults.oauth_client_id),
        oauth_scope=os.getenv("GISTFLOW_OAUTH_SCOPE", defaults.oauth_scope),
        gist_filename=os.getenv("GISTFLOW_GIST_FILENAME", defaults.gist_filename),
        gist_description=os.getenv("GISTFLOW_GIST_DESCRIPTION", defaults.gist_description),
        test_token=_read_optional_env("GISTFLOW_TEST_TOKEN"),
        time_unit_seconds=float(os.getenv("GISTFLOW_TIME_UNIT_SECONDS", str(defaults.time_unit_seconds))),
        saved_indicator_delay=int(os.getenv("GISTFLOW_SAVED_INDICATOR_DELAY", str(defaults.saved_indicator_delay))),
        max_microsteps=int(os.getenv("GISTFLOW_MAX_MICROSTEPS", str(defaults.max_microsteps))),
        http_timeout_seconds=float(os.getenv("GISTFLOW_HTTP_TIMEOUT_SECONDS", str(defaults.http_timeout_seconds))),
        log_level=os.getenv("GISTFLOW_LOG_LEVEL", defaults.log_level).upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance."""
    return load_settings_from_env()


def configure_logging(level: str = "INFO") -> None:
    """
    Attach a stream handler to the ``gistflow`` logger.

    :param level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    :raises ValueError: If the level is unknown.
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Valid: {', '.join(sorted(VALID_LOG_LEVELS))}")

    package_logger = logging.getLogger("gistflow")
    package_logger.setLevel(level_upper)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_gistflow_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._gistflow_handler = True
    package_logger.addHandler(handler)
