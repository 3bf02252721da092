"""
NUT (Network UPS Tools) client wrapper.

This module provides an asynchronous client for interacting with a NUT server
on top of a :class:`~nutline.nut.pool.SessionPool`. Blocking session I/O runs
in worker threads via anyio.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

import anyio

from ..config import settings
from .errors import NUTAuthenticationError, NUTError
from .models import Variable
from .pool import PoolConfig, SessionPool
from .session import Session, SessionOptions
from .ups import UPS

logger = logging.getLogger(__name__)


class NUTClient:
    """
    An asynchronous client for NUT servers.
    """

    def __init__(
        self,
        host: str = settings.NUT_HOST,
        port: int = settings.NUT_PORT,
        username: str | None = settings.NUT_USERNAME,
        password: str | None = settings.NUT_PASSWORD,
        max_connections: int = settings.POOL_MAX_SIZE,
        options: SessionOptions | None = None,
    ):
        """
        Initialize the NUT client.

        Args:
            host: The NUT server hostname or IP address.
            port: The NUT server port.
            username: The username for authentication.
            password: The password for authentication.
            max_connections: The maximum number of pooled sessions.
            options: Session options; defaults come from settings.
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self._pool = SessionPool(
            PoolConfig(
                host=host,
                port=port,
                max_size=max_connections,
                options=options or SessionOptions.from_settings(),
            )
        )
        logger.info("Initialized NUT client host=%s port=%s user=%s", self.host, self.port, bool(self.username))

    @property
    def pool(self) -> SessionPool:
        return self._pool

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        """
        Borrow an authenticated session from the pool.

        A session whose login failed is marked unusable, so the pool closes
        it instead of reusing a connection that already holds a username.
        """
        async with self._pool.session() as session:
            if self.username and session.authenticated_user != self.username:
                try:
                    ok = await anyio.to_thread.run_sync(session.authenticate, self.username, self.password or "")
                except NUTError:
                    session.mark_unusable("login failed")
                    raise
                if not ok:
                    session.mark_unusable("login not acknowledged")
                    raise NUTAuthenticationError("AUTH-FAILED", f"login as {self.username!r} was not acknowledged")
            yield session

    async def list_ups(self) -> Dict[str, str]:
        """
        List the available UPS devices on the NUT server.

        Returns:
            A dictionary of UPS devices, where the key is the UPS name and
            the value is the UPS description.

        Raises:
            NUTError: If there is an error communicating with the server.
        """
        logger.debug("Listing UPS devices from %s:%s", self.host, self.port)
        try:
            async with self.session() as session:
                upses = await anyio.to_thread.run_sync(session.list_ups)
        except NUTError as e:
            logger.error("Failed to list UPS devices from %s:%s: %s", self.host, self.port, e)
            raise
        logger.info("NUT list_ups ok: %d devices", len(upses))
        return {ups.name: ups.description for ups in upses}

    async def get_vars(self, ups_name: str) -> Dict[str, str]:
        """
        Get all raw variable values for a specific UPS.

        Args:
            ups_name: The name of the UPS device.

        Returns:
            A dictionary of variable names to raw values.
        """
        logger.debug("Fetching vars for UPS '%s'", ups_name)
        try:
            async with self.session() as session:
                vars_ = await anyio.to_thread.run_sync(UPS(session, ups_name).list_variable_values)
        except NUTError as e:
            logger.error("Failed to get variables for UPS '%s': %s", ups_name, e)
            raise
        logger.info("NUT get_vars ok for '%s' (%d vars)", ups_name, len(vars_))
        return vars_

    async def get_var(self, ups_name: str, var: str) -> str:
        """
        Get a single raw variable value for a specific UPS.

        Args:
            ups_name: The name of the UPS device.
            var: The name of the variable to fetch.
        """
        logger.debug("Fetching var '%s' for UPS '%s'", var, ups_name)
        try:
            async with self.session() as session:
                value = await anyio.to_thread.run_sync(UPS(session, ups_name).get_variable_value, var)
        except NUTError as e:
            logger.error("Failed to get variable '%s' for UPS '%s': %s", var, ups_name, e)
            raise
        logger.info("NUT get_var ok '%s' for '%s'", var, ups_name)
        return value

    async def get_variables(self, ups_name: str) -> List[Variable]:
        """Get every variable of a UPS with description and inferred type."""
        async with self.session() as session:
            return await anyio.to_thread.run_sync(UPS(session, ups_name).get_variables)

    async def close(self) -> None:
        """Close the client's idle sessions."""
        await self._pool.close()
