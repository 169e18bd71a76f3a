"""Bounded fan-out with first-error cancellation.

``BoundedGroup`` runs coroutines with at most ``limit`` of them in flight,
waits for all of them, and reports the first failure.  The first failure
cancels the group's ``CancellationToken``: nothing new is admitted and
in-flight tasks receive ``CancelledError`` at their next ``await``.

Tokens form a tree.  A group created with a parent token is cancelled
whenever the parent is, which is how a failing schema stops the tables of
every other schema in the same run.

Usage:
    from mysql_gcs_backup.concurrency import BoundedGroup, CancellationToken

    root = CancellationToken()
    async with BoundedGroup(2, token=root, name="schemas") as group:
        for schema in schemas:
            if not await group.spawn(backup_schema, schema, name=schema):
                break
    # leaving the block waits for every task and raises the first error
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

CancelCallback = Callable[[BaseException | None], Any]


class CancellationToken:
    """Write-once, read-many cancellation signal.

    ``cancel()`` is idempotent: the first call wins and records its reason,
    later calls are no-ops.  Reading ``cancelled`` never blocks.

    Args:
        parent: Optional parent token.  Cancelling the parent cancels this
            token with the parent's reason.
    """

    def __init__(self, parent: "CancellationToken | None" = None) -> None:
        self._cancelled = False
        self._reason: BaseException | None = None
        self._callbacks: list[CancelCallback] = []
        if parent is not None:
            parent.add_callback(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> BaseException | None:
        return self._reason

    def cancel(self, reason: BaseException | None = None) -> bool:
        """Cancel the token.

        Returns:
            ``True`` if this call cancelled the token, ``False`` if it was
            already cancelled.
        """
        if self._cancelled:
            return False
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)
        return True

    def add_callback(self, callback: CancelCallback) -> None:
        """Run ``callback(reason)`` on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback(self._reason)
        else:
            self._callbacks.append(callback)


class BoundedGroup:
    """At-most-``limit`` concurrent task group with first-error semantics.

    Args:
        limit: Maximum number of concurrently running tasks (``>= 1``).
        token: Optional parent cancellation token.
        name: Label used in log messages.

    Raises:
        ValueError: If ``limit`` is less than 1.
    """

    def __init__(
        self,
        limit: int,
        token: CancellationToken | None = None,
        name: str = "group",
    ) -> None:
        if limit < 1:
            raise ValueError(f"{name}: concurrency limit must be >= 1, got {limit}")

        self.name = name
        self.limit = limit
        self.token = CancellationToken(parent=token)
        self._semaphore = asyncio.Semaphore(limit)
        self._tasks: set[asyncio.Task] = set()
        self._first_error: Exception | None = None
        self._active = 0
        self._peak = 0
        self.token.add_callback(self._cancel_tasks)

    async def __aenter__(self) -> "BoundedGroup":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is not None:
            self.token.cancel(exc_val)
            await self.wait()
            return False
        await self.wait()
        if self._first_error is not None:
            raise self._first_error
        return False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def first_error(self) -> Exception | None:
        """The temporally first exception raised by a task, if any."""
        return self._first_error

    @property
    def active(self) -> int:
        """Number of tasks currently running."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest number of tasks that were running at the same time."""
        return self._peak

    # ------------------------------------------------------------------
    # Submit / wait
    # ------------------------------------------------------------------

    async def spawn(
        self,
        factory: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str | None = None,
    ) -> bool:
        """Start ``factory(*args)`` once a slot is free.

        Blocks while ``limit`` tasks are running.

        Returns:
            ``True`` if the task was started, ``False`` if the group was
            cancelled before a slot became available.
        """
        if self.token.cancelled:
            return False

        await self._semaphore.acquire()
        if self.token.cancelled:
            self._semaphore.release()
            return False

        task = asyncio.create_task(self._guard(factory, args, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return True

    async def wait(self) -> None:
        """Wait until every spawned task has finished.

        If the waiting task is itself cancelled, the group is cancelled too,
        the remaining tasks are still waited on, and ``CancelledError`` is
        raised afterwards.
        """
        interrupted = False
        while self._tasks:
            try:
                await asyncio.wait(set(self._tasks))
            except asyncio.CancelledError:
                interrupted = True
                self.token.cancel()
        if interrupted:
            raise asyncio.CancelledError()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _guard(
        self,
        factory: Callable[..., Awaitable[Any]],
        args: tuple,
        name: str | None,
    ) -> None:
        self._active += 1
        self._peak = max(self._peak, self._active)
        try:
            await factory(*args)
        except asyncio.CancelledError:
            if not self.token.cancelled:
                raise
            logger.debug(f"[{self.name}] {name} cancelled")
        except Exception as e:
            # No await between the check and the assignment, so the first
            # error recorded is the first one raised on the event loop.
            if self._first_error is None:
                self._first_error = e
                self.token.cancel(e)
            else:
                logger.warning(f"[{self.name}] {name} also failed: {e}")
        finally:
            self._active -= 1

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._semaphore.release()

    def _cancel_tasks(self, reason: BaseException | None) -> None:
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()
