"""
Client session resilience.

Keeps an authenticated session alive across transient connectivity loss.
Network-class failures (Transient) are retried with exponential backoff;
credential-class failures (AuthInvalid) are never retried and force a
sign-out, since retrying cannot fix a bad refresh token and would hide it.

    connected --Transient--> connecting --ok--> connected (+ full refresh)
                                        --exhausted--> disconnected
              --AuthInvalid--> signed_out
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import ValidationError

from dislink.errors import AuthInvalid, Transient
from dislink.models.auth import AuthSession
from dislink.services.identity import IdentityProviderClient

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    SIGNED_OUT = "signed_out"


Refresh = Callable[[], Awaitable[Any]]
Listener = Callable[[ConnectionState], None]


async def _noop(*_args: Any) -> None:
    return None


class SessionKeeper:
    """
    Bounded retry loop around a session refresh call.

    Args:
        refresh: Re-establishes the session; raises Transient or AuthInvalid
        on_refreshed: Called with refresh()'s result after reconnecting;
            reloads the full user state
        on_signed_out: Called once on AuthInvalid; clears local state and
            routes to the login entry point
        base_delay: Seconds before the first retry; doubles every attempt
        max_attempts: Total refresh attempts before settling disconnected
        sleep: Injectable for tests
    """

    def __init__(
        self,
        refresh: Refresh,
        on_refreshed: Callable[[Any], Awaitable[None]] = _noop,
        on_signed_out: Callable[[], Awaitable[None]] = _noop,
        base_delay: float = 1.0,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._refresh = refresh
        self._on_refreshed = on_refreshed
        self._on_signed_out = on_signed_out
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._state = ConnectionState.CONNECTED
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def can_reconnect(self) -> bool:
        """Whether the UI should offer a manual reconnect button."""
        return self._state == ConnectionState.DISCONNECTED

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (0-based)."""
        return self._base_delay * (2**attempt)

    async def reconnect(self) -> bool:
        """
        Try to re-establish the session.

        Returns:
            True once connected, False after exhausting retries

        Raises:
            AuthInvalid: After forcing sign-out
            Exception: Anything unexpected from refresh, after settling
                disconnected
        """
        self._set_state(ConnectionState.CONNECTING)
        try:
            for attempt in range(self._max_attempts):
                try:
                    session = await self._refresh()
                except AuthInvalid:
                    logger.warning("session: credentials rejected, signing out")
                    self._set_state(ConnectionState.SIGNED_OUT)
                    await self._on_signed_out()
                    raise
                except Transient:
                    if attempt + 1 >= self._max_attempts:
                        break
                    delay = self.backoff_delay(attempt)
                    logger.info(
                        "session: reconnect attempt %d/%d failed, retrying in %.1fs",
                        attempt + 1,
                        self._max_attempts,
                        delay,
                    )
                    await self._sleep(delay)
                    continue

                self._set_state(ConnectionState.CONNECTED)
                await self._on_refreshed(session)
                return True
        except (asyncio.CancelledError, AuthInvalid):
            if self._state != ConnectionState.SIGNED_OUT:
                self._set_state(ConnectionState.DISCONNECTED)
            raise
        except Exception:
            logger.exception("session: unexpected error while reconnecting")
            self._set_state(ConnectionState.DISCONNECTED)
            raise

        logger.warning("session: giving up after %d attempts", self._max_attempts)
        self._set_state(ConnectionState.DISCONNECTED)
        return False

    async def handle_failure(self, error: Exception) -> None:
        """
        Route a failed request to the right recovery path.

        Transient failures start a background reconnect; AuthInvalid signs
        out immediately. Anything else is not ours to handle.
        """
        if isinstance(error, AuthInvalid):
            self._set_state(ConnectionState.SIGNED_OUT)
            await self._on_signed_out()
        elif isinstance(error, Transient):
            self.start()
        else:
            raise error

    def start(self) -> asyncio.Task:
        """Run reconnect() in the background unless a run is already in progress."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.reconnect())
            self._task.add_done_callback(_reap)
        return self._task

    async def close(self) -> None:
        """Cancel a running reconnect loop. Call when the owning view goes away."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, AuthInvalid):
            pass

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)


def _reap(task: asyncio.Task) -> None:
    # Background runs have already logged and settled their state
    if not task.cancelled():
        task.exception()


class HttpSessionRefresher:
    """
    refresh() implementation backed by the identity provider.

    Holds the current refresh token and swaps it on every successful refresh.
    """

    def __init__(self, refresh_token: str, client: IdentityProviderClient | None = None) -> None:
        self._refresh_token = refresh_token
        self._client = client or IdentityProviderClient()

    async def __call__(self) -> AuthSession:
        body = await self._client.refresh(self._refresh_token)
        try:
            session = AuthSession.model_validate(body)
        except ValidationError as e:
            logger.warning("session: unexpected refresh response shape: %s", e)
            raise Transient() from e
        self._refresh_token = session.refresh_token
        return session
