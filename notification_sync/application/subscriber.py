"""Lifecycle of the per-user push channel subscription."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from notification_sync.config import Settings, get_settings
from notification_sync.domain.errors import TransportError
from notification_sync.infrastructure.realtime import (
    ChannelClosedError,
    ChannelConnection,
    ChannelTransport,
)

logger = logging.getLogger(__name__)

TOPIC = "notifications"

MessageSink = Callable[[Mapping[str, Any], int], Any]
ActiveCallback = Callable[[bool], None]
StateListener = Callable[["SubscriptionState", "TransportError | None"], None]


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "UNSUBSCRIBED"
    SUBSCRIBING = "SUBSCRIBING"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


class ChannelSubscriber:
    """Keep one user's push subscription alive and tag every message with its epoch.

    The epoch grows on every subscription attempt and on teardown. Consumers
    compare a message's epoch with :attr:`epoch` to drop anything delivered by
    a superseded subscription.

    After a disconnect the subscriber reconnects with bounded exponential
    backoff and reports ``reconnected=True`` through ``on_active``: the
    channel cannot replay what was emitted during the gap, so the owner must
    resync from the persistence API.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        on_message: MessageSink,
        *,
        on_active: ActiveCallback | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = settings or get_settings()
        self._transport = transport
        self._on_message = on_message
        self._on_active = on_active
        self._sleep = sleep
        self._initial_delay = settings.reconnect_initial_delay
        self._factor = settings.reconnect_backoff_factor
        self._max_delay = settings.reconnect_max_delay
        self._max_attempts = settings.max_reconnect_attempts

        self._state = SubscriptionState.UNSUBSCRIBED
        self._epoch = 0
        self._user_id: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._active = asyncio.Event()
        self._last_error: TransportError | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def last_error(self) -> TransportError | None:
        return self._last_error

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect ``attempt`` (1-based)."""

        delay = self._initial_delay * (self._factor ** max(0, attempt - 1))
        return min(delay, self._max_delay)

    async def start(self, user_id: str) -> None:
        """Open the subscription for ``user_id`` in a background task."""

        if self._task is not None and not self._task.done():
            if user_id == self._user_id:
                return
            await self.stop()
        self._user_id = user_id
        self._last_error = None
        self._task = asyncio.create_task(
            self._run(user_id), name=f"notification-channel:{user_id}"
        )

    async def stop(self) -> None:
        """Tear the subscription down; later messages of this instance are stale."""

        self._epoch += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._active.clear()
        self._set_state(SubscriptionState.UNSUBSCRIBED)

    async def wait_until_active(self, timeout: float | None = None) -> bool:
        """Wait until the subscription is ``ACTIVE``; ``False`` on timeout."""

        if self._active.is_set():
            return True
        try:
            await asyncio.wait_for(self._active.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run(self, user_id: str) -> None:
        failures = 0
        was_active = False
        while True:
            self._epoch += 1
            epoch = self._epoch
            self._set_state(SubscriptionState.SUBSCRIBING)
            connection: ChannelConnection | None = None
            try:
                connection = await self._transport.connect(f"{TOPIC}:{user_id}", user_id)
                await connection.confirmed()
                failures = 0
                self._last_error = None
                self._active.set()
                self._set_state(SubscriptionState.ACTIVE)
                logger.info("Notification channel active for user %s (epoch %s)", user_id, epoch)
                if self._on_active is not None:
                    self._on_active(was_active)
                was_active = True
                while True:
                    message = await connection.receive()
                    self._on_message(message, epoch)
            except (TransportError, OSError) as exc:
                error = exc if isinstance(exc, TransportError) else TransportError(str(exc))
                self._last_error = error
                self._active.clear()
                closed = isinstance(exc, ChannelClosedError)
                self._set_state(
                    SubscriptionState.CLOSED if closed else SubscriptionState.ERROR, error
                )
                logger.warning("Notification channel for user %s lost: %s", user_id, exc)
            finally:
                if connection is not None:
                    await _close_quietly(connection)

            failures += 1
            if self._max_attempts is not None and failures > self._max_attempts:
                self._set_state(SubscriptionState.ERROR, self._last_error)
                logger.error(
                    "Giving up on the notification channel for user %s after %s attempts",
                    user_id,
                    failures,
                )
                return

            delay = self.backoff_delay(failures)
            logger.info("Reconnecting notification channel in %.2f seconds", delay)
            await self._sleep(delay)

    def _set_state(
        self, state: SubscriptionState, error: TransportError | None = None
    ) -> None:
        if state is self._state and error is None:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state, error)


async def _close_quietly(connection: ChannelConnection) -> None:
    try:
        await connection.close()
    except (TransportError, OSError) as exc:
        logger.debug("Ignoring error while closing channel: %s", exc)


__all__ = ["ChannelSubscriber", "SubscriptionState", "TOPIC"]
