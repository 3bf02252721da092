"""
Connection pool for NUT sessions.

Hands out idle sessions to one endpoint or opens new ones up to a fixed
maximum. The pool belongs to a single asyncio event loop; its bookkeeping
is only touched from that loop, never across an ``await``.
"""

import asyncio
import logging
import threading
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, List, Optional, Set, Tuple

import anyio

from . import protocol
from .errors import NUTPoolClosedError, NUTPoolExhaustedError, NUTSessionClosedError
from .session import Session, SessionOptions

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 10


@dataclass
class PoolConfig:
    """Configuration for a session pool."""

    host: str
    port: int = protocol.DEFAULT_PORT
    max_size: int = DEFAULT_POOL_SIZE
    options: SessionOptions = field(default_factory=SessionOptions)


class SessionPool:
    """
    A bounded pool of sessions to one NUT server.

    ``active`` counts sessions currently handed out; ``active + idle`` never
    exceeds ``max_size``. Sessions are created in a worker thread, so the
    event loop is not blocked by the connect handshake.
    """

    def __init__(self, config: PoolConfig):
        if not config.host:
            raise ValueError("hostname is required")
        self.host = config.host
        self.port = config.port or protocol.DEFAULT_PORT
        self.max_size = config.max_size if config.max_size > 0 else DEFAULT_POOL_SIZE
        self.options = config.options
        self._idle: Deque[Session] = deque()
        self._checked_out: Set[Session] = set()
        self._active = 0
        self._closed = False
        self._changed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> Tuple[int, int]:
        """Return ``(idle, active)``."""
        return len(self._idle), self._active

    async def acquire(self, timeout: Optional[float] = None) -> Session:
        """
        Get a session from the pool, creating one if there is room.

        Args:
            timeout: Seconds to wait for an idle session or for a new one to
                connect. None waits indefinitely. A connect still running
                when the timeout elapses is abandoned and its session closed.

        Raises:
            NUTPoolClosedError: If the pool is closed.
            NUTPoolExhaustedError: If no session became available in time.
            NUTConnectionError: If a new session could not be connected.
        """
        try:
            with anyio.fail_after(timeout):
                while True:
                    if self._closed:
                        raise NUTPoolClosedError("pool is closed")

                    while self._idle:
                        session = self._idle.popleft()
                        if session.usable:
                            self._hand_out(session)
                            return session
                        logger.debug("Discarding dead idle session %r", session)
                        await self._discard(session)

                    if self._active + len(self._idle) < self.max_size:
                        self._active += 1
                        return await self._create()

                    self._changed.clear()
                    await self._changed.wait()
        except TimeoutError as e:
            raise NUTPoolExhaustedError(
                f"No session to {self.host}:{self.port} available within {timeout}s"
            ) from e

    def _hand_out(self, session: Session) -> None:
        self._active += 1
        self._checked_out.add(session)

    async def _create(self) -> Session:
        # The slot for this session is already counted in self._active.
        guard = threading.Lock()
        created: List[Session] = []
        abandoned = False

        def connect() -> Session:
            session = Session.connect(self.host, self.port, self.options)
            with guard:
                if not abandoned:
                    created.append(session)
                    return session
            # acquire() gave up while the handshake was running.
            session.close()
            return session

        try:
            session = await anyio.to_thread.run_sync(connect, abandon_on_cancel=True)
        except BaseException:
            with guard:
                abandoned = True
                orphans = list(created)
            self._active -= 1
            self._changed.set()
            for orphan in orphans:
                orphan.close()
            raise

        session.record_reconnect()
        self._checked_out.add(session)
        logger.debug("Opened new session to %s:%s (active=%d)", self.host, self.port, self._active)
        return session

    async def release(self, session: Optional[Session]) -> None:
        """
        Return a session to the pool.

        Sessions that are unusable, not from this pool, or released into a
        closed or full pool are closed instead.
        """
        if session is None:
            return

        if session not in self._checked_out:
            logger.warning("Closing session %r that was not acquired from this pool", session)
            await self._discard(session)
            return

        self._checked_out.discard(session)
        self._active -= 1
        if self._closed or not session.usable or len(self._idle) >= self.max_size:
            await self._discard(session)
        else:
            self._idle.append(session)
        self._changed.set()

    async def _discard(self, session: Session) -> None:
        try:
            await anyio.to_thread.run_sync(session.close)
        except NUTSessionClosedError:
            pass

    async def close(self) -> None:
        """
        Close the pool and every idle session.

        Sessions still checked out must be released or closed by their
        holders.
        """
        if self._closed:
            return
        self._closed = True
        idle = list(self._idle)
        self._idle.clear()
        self._changed.set()
        for session in idle:
            await self._discard(session)
        logger.info("Closed session pool for %s:%s (%d idle sessions)", self.host, self.port, len(idle))

    @asynccontextmanager
    async def session(self, timeout: Optional[float] = None) -> AsyncIterator[Session]:
        """Acquire a session for the duration of a ``async with`` block."""
        session = await self.acquire(timeout)
        try:
            yield session
        finally:
            await self.release(session)
