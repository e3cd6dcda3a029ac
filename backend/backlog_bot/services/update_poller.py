"""Update Poller: getUpdates long polling feeding the dispatcher.

Invariants:
    - offset advances past every received update before it is dispatched
      (an update that crashes its handler is never redelivered)
    - One task per update; tasks are tracked until done so shutdown can await them
    - MessagingAPIError from getUpdates backs off and retries, never ends the loop

Design Decisions:
    - Concurrency across users comes from the task-per-update fan-out; ordering
      within one user comes from the dispatcher's per-user lock
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from backlog_bot.core.errors import MessagingAPIError
from backlog_bot.schemas.telegram import Update

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 5.0


class UpdatePoller:
    def __init__(
        self,
        get_updates: Callable[[int | None, int], Awaitable[list[Update]]],
        handle: Callable[[Update], Awaitable[None]],
        poll_timeout: int = 30,
        error_backoff: float = ERROR_BACKOFF_SECONDS,
    ):
        self._get_updates = get_updates
        self._handle = handle
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff
        self._offset: int | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def offset(self) -> int | None:
        return self._offset

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def poll_once(self) -> int:
        """Fetch one batch and spawn its tasks. Returns the number of updates."""
        updates = await self._get_updates(self._offset, self._poll_timeout)
        for update in sorted(updates, key=lambda u: u.update_id):
            self._offset = update.update_id + 1
            task = asyncio.create_task(self._handle(update))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return len(updates)

    async def run(self) -> None:
        logger.info("Update polling started")
        while True:
            try:
                await self.poll_once()
            except MessagingAPIError as e:
                logger.warning(
                    f"getUpdates failed, retrying in {self._error_backoff}s: {e.message}",
                    extra={"error_code": e.code},
                )
                await asyncio.sleep(self._error_backoff)

    async def drain(self) -> None:
        """Wait for in-flight dispatch tasks (shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
