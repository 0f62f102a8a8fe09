"""
Profile cache invalidation.

Views that cache profile data register a listener; the parser notifies them
after a successful parse. Notification is fire-and-forget.
"""
import asyncio
import inspect
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)


class ProfileCacheInvalidator:
    def __init__(self):
        self._listeners: List[Callable] = []
        self._tasks = set()

    def register(self, listener: Callable) -> None:
        """Listener is called with the user id; may be sync or async."""
        self._listeners.append(listener)

    def notify(self, user_id: int) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(user_id)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_listener_done)
            except Exception:
                logger.exception("Profile cache listener failed for user %s", user_id)

    def _on_listener_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Profile cache listener failed: %s", task.exception())
