# gistflow/app/notifications.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
from typing import Callable, List, Optional, Union

from gistflow.app.services import Notification, as_notification

logger = logging.getLogger(__name__)

_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "success": logging.INFO,
}


class LoggingNotificationSink:
    """
    Notification sink writing every notification to the log, optionally
    forwarding it to a display callback.
    """

    def __init__(self, display: Optional[Callable[[Notification], None]] = None, keep: int = 50) -> None:
        """
        :param display: Optional callback rendering the notification to the user.
        :param keep: Number of recent notifications retained in ``recent``; 0 retains none.
        """
        self._display = display
        self._keep = keep
        self._recent: List[Notification] = []

    def notify(self, notification: Union[str, Notification]) -> None:
        notification = as_notification(notification)
        level = _LEVELS.get(notification.severity, logging.INFO)
        if notification.description:
            logger.log(level, "%s: %s", notification.message, notification.description)
        else:
            logger.log(level, "%s", notification.message)

        if self._keep > 0:
            self._recent.append(notification)
            del self._recent[: -self._keep]
        if self._display is not None:
            self._display(notification)

    @property
    def recent(self) -> List[Notification]:
        return list(self._recent)
