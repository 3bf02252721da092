"""
A single conversation with a NUT server.

A Session owns one TCP connection (optionally upgraded with STARTTLS) and
serializes every command on it: the session lock is held from the moment a
command is written until its full response has been read.
"""

import logging
import socket
import ssl
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import anyio

from ..config import settings
from . import protocol
from .errors import (
    NUTAlreadyTLSError,
    NUTConnectionError,
    NUTEmptyResponseError,
    NUTError,
    NUTSessionClosedError,
    NUTTimeoutError,
)
from .framing import LineFramer
from .models import SessionMetrics
from .quoting import quote_name
from .ups import UPS

logger = logging.getLogger(__name__)


@dataclass
class SessionOptions:
    """Configuration for NUT sessions."""

    connect_timeout: float = 5.0
    read_timeout: float = 2.0
    use_tls: bool = False
    tls_context: Optional[ssl.SSLContext] = None
    logger: Optional[logging.Logger] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls) -> "SessionOptions":
        """Build options from the environment-backed settings."""
        tls_context = None
        if settings.USE_TLS:
            tls_context = ssl.create_default_context(cafile=settings.TLS_CA_FILE)
            if not settings.TLS_VERIFY:
                tls_context.check_hostname = False
                tls_context.verify_mode = ssl.CERT_NONE
        return cls(
            connect_timeout=settings.CONNECT_TIMEOUT,
            read_timeout=settings.READ_TIMEOUT,
            use_tls=settings.USE_TLS,
            tls_context=tls_context,
        )


class Session:
    """
    A connection to a NUT server.

    Use :meth:`connect` to create one; the constructor only wraps an already
    connected socket. After a read timed out or was cancelled the session is
    tainted: it refuses further commands and must be closed and replaced.
    """

    def __init__(
        self,
        sock: socket.socket,
        host: str,
        port: int = protocol.DEFAULT_PORT,
        options: Optional[SessionOptions] = None,
    ):
        self.host = host
        self.port = port
        self.options = options or SessionOptions()
        self.logger = self.options.logger or logger
        self.version: Optional[str] = None
        self.protocol_version: Optional[str] = None
        self.authenticated_user: Optional[str] = None
        try:
            self.address: Optional[Tuple[Any, ...]] = sock.getpeername()
        except OSError:
            self.address = None

        self._lock = threading.Lock()
        self._sock: Optional[socket.socket] = sock
        self._metrics = SessionMetrics()
        self._framer: Optional[LineFramer] = LineFramer(sock, self.options.read_timeout, self._metrics)
        self._tls_active = False
        self._tainted = False

    @classmethod
    def connect(
        cls,
        host: str,
        port: int = protocol.DEFAULT_PORT,
        options: Optional[SessionOptions] = None,
    ) -> "Session":
        """
        Open a session and perform the version handshake.

        Args:
            host: The NUT server hostname or IP address.
            port: The NUT server port.
            options: Timeouts, TLS and logging options.

        Returns:
            A connected session.

        Raises:
            NUTConnectionError: If the connection or the handshake fails. The
                socket is closed in that case.
        """
        options = options or SessionOptions()
        log = options.logger or logger
        log.debug("Connecting to %s:%s (timeout: %ss)", host, port, options.connect_timeout)
        try:
            sock = socket.create_connection((host, port), timeout=options.connect_timeout)
        except OSError as e:
            log.debug("Connection to %s:%s failed: %s", host, port, e)
            raise NUTConnectionError(f"Failed to connect to {host}:{port}: {e}") from e

        session = cls(sock, host, port, options)
        try:
            session.get_version()
            session.get_network_protocol_version()
            if options.use_tls:
                session.start_tls()
        except NUTError as e:
            session._shutdown()
            log.debug("Handshake with %s:%s failed: %s", host, port, e)
            raise NUTConnectionError(f"Handshake with {host}:{port} failed: {e}") from e

        log.info(
            "Connected to %s:%s version=%r protocol=%r tls=%s",
            host, port, session.version, session.protocol_version, session.tls_active,
        )
        return session

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def tls_active(self) -> bool:
        return self._tls_active

    @property
    def usable(self) -> bool:
        """True while the session is open and no read has been abandoned."""
        return self._sock is not None and not self._tainted

    @property
    def metrics(self) -> SessionMetrics:
        """A snapshot of the session's counters."""
        return self._metrics.model_copy()

    def record_reconnect(self) -> None:
        self._metrics.reconnects += 1

    def mark_unusable(self, reason: str) -> None:
        """Refuse further commands; pools close the session on release."""
        if not self._tainted:
            self.logger.warning("Session to %s:%s is no longer usable: %s", self.host, self.port, reason)
        self._tainted = True

    def _round_trip(self, command: str) -> List[str]:
        # Caller holds self._lock.
        if self._sock is None or self._framer is None:
            raise NUTSessionClosedError("Connection already closed")
        if self._tainted:
            raise NUTConnectionError("Session is unusable after an interrupted read")

        shown = "PASSWORD ****" if command.startswith("PASSWORD") else command.strip()
        multi_line = protocol.is_listing_command(command)
        try:
            self._framer.write_line(command)
        except NUTError:
            self._metrics.commands_failed += 1
            raise
        self._metrics.commands_sent += 1
        self._metrics.last_command_time = datetime.now(timezone.utc)
        self.logger.debug("Sent command: %s", shown)

        try:
            lines = self._framer.read_response(protocol.sentinel_for(command), multi_line)
        except NUTTimeoutError:
            self._metrics.commands_failed += 1
            self.mark_unusable("read timed out")
            raise
        except NUTConnectionError:
            self._metrics.commands_failed += 1
            self.mark_unusable("connection lost")
            raise

        try:
            protocol.raise_for_error(lines)
        except NUTError as e:
            self._metrics.commands_failed += 1
            self.logger.debug("Server error for %s: %s", shown, e)
            raise
        return lines

    def send_command(self, command: str) -> List[str]:
        """
        Send ``command`` and return the response lines.

        Names embedded in ``command`` must already be quoted with
        :func:`~nutline.nut.quoting.quote_name`.

        Raises:
            NUTServerError: If the server answered with ``ERR``.
            NUTTimeoutError: If the response did not arrive in time.
            NUTConnectionError: If the connection failed or is closed.
        """
        with self._lock:
            return self._round_trip(command)

    async def send_command_async(self, command: str, *, timeout: Optional[float] = None) -> List[str]:
        """
        Send ``command`` from async code, honoring cancellation.

        The blocking round trip runs in a worker thread. If ``timeout``
        elapses or the calling task is cancelled, the read is abandoned and the
        session becomes unusable; it must be closed and not returned to a pool.

        Raises:
            NUTTimeoutError: If ``timeout`` elapsed first.
        """
        try:
            with anyio.fail_after(timeout):
                return await anyio.to_thread.run_sync(self.send_command, command, abandon_on_cancel=True)
        except TimeoutError as e:
            self.mark_unusable("command timed out")
            raise NUTTimeoutError(f"Command {command.split(' ', 1)[0]!r} timed out after {timeout}s") from e
        except anyio.get_cancelled_exc_class():
            self.mark_unusable("command cancelled")
            raise

    def _single_line(self, command: str) -> str:
        resp = self.send_command(command)
        if not resp:
            raise NUTEmptyResponseError(f"Empty response from {command.split(' ', 1)[0]} command")
        return resp[0]

    def get_version(self) -> str:
        """Return the version of the server currently in use."""
        self.version = self._single_line("VER")
        return self.version

    def get_network_protocol_version(self) -> str:
        """Return the version of the network protocol currently in use."""
        self.protocol_version = self._single_line("NETVER")
        return self.protocol_version

    def help(self) -> str:
        """Return the server's list of supported commands."""
        return self._single_line("HELP")

    def start_tls(self) -> None:
        """
        Upgrade the connection to TLS with STARTTLS.

        Raises:
            NUTAlreadyTLSError: If the session is already encrypted.
            NUTServerError: If the server rejected STARTTLS.
            NUTConnectionError: If the handshake failed. The session is closed
                in that case.
        """
        with self._lock:
            if self._tls_active:
                raise NUTAlreadyTLSError("ALREADY-SSL-MODE", "session is already in TLS mode")

            resp = self._round_trip("STARTTLS")
            if not resp or resp[0] != protocol.OK_STARTTLS:
                reply = resp[0] if resp else "empty response"
                raise NUTConnectionError(f"Server did not accept STARTTLS: {reply}")

            context = self.options.tls_context or ssl.create_default_context()
            plain_sock, old_framer = self._sock, self._framer
            old_framer.close()
            plain_sock.settimeout(self.options.connect_timeout)
            try:
                tls_sock = context.wrap_socket(plain_sock, server_hostname=self.host, do_handshake_on_connect=False)
            except (ssl.SSLError, OSError, ValueError) as e:
                self._close_socket()
                raise NUTConnectionError(f"TLS handshake failed: {e}") from e
            try:
                tls_sock.do_handshake()
            except (ssl.SSLError, OSError) as e:
                tls_sock.close()
                self._sock = None
                self._framer = None
                raise NUTConnectionError(f"TLS handshake failed: {e}") from e

            self._sock = tls_sock
            self._framer = LineFramer(tls_sock, self.options.read_timeout, self._metrics)
            self._tls_active = True
            self.logger.info("TLS established with %s:%s (%s)", self.host, self.port, tls_sock.version())

    def authenticate(self, username: str, password: str) -> bool:
        """
        Authenticate the session.

        Returns:
            True if both USERNAME and PASSWORD were acknowledged with ``OK``.
        """
        username_resp = self.send_command(f"USERNAME {quote_name(username)}")
        password_resp = self.send_command(f"PASSWORD {quote_name(password)}")
        if username_resp[:1] == [protocol.OK] and password_resp[:1] == [protocol.OK]:
            self.authenticated_user = username
            return True
        return False

    def list_ups(self) -> List[UPS]:
        """Return every UPS served by this server."""
        upses = []
        for line in self.send_command("LIST UPS"):
            if not line.startswith("UPS "):
                continue
            name = line[len("UPS "):].split('"', 1)[0].rstrip(" ")
            if not name:
                continue
            upses.append(UPS.lazy(self, name))
        return upses

    def _close_socket(self) -> None:
        if self._framer is not None:
            self._framer.close()
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                self.logger.debug("Ignoring error while closing socket", exc_info=True)
        self._sock = None
        self._framer = None

    def _shutdown(self) -> None:
        with self._lock:
            self._close_socket()

    def disconnect(self) -> bool:
        """
        Log out and close the connection.

        Returns:
            True if the server acknowledged the LOGOUT.

        Raises:
            NUTSessionClosedError: If the session is already closed.
        """
        with self._lock:
            if self._sock is None:
                raise NUTSessionClosedError("Connection already closed")
            try:
                resp = self._round_trip("LOGOUT")
            except NUTError as e:
                self.logger.debug("LOGOUT failed, closing anyway: %s", e)
                resp = []
            self._close_socket()
        return bool(resp) and resp[0] in protocol.LOGOUT_REPLIES

    def close(self) -> None:
        """
        Close the connection without logging out.

        Raises:
            NUTSessionClosedError: If the session is already closed.
        """
        with self._lock:
            if self._sock is None:
                raise NUTSessionClosedError("Connection already closed")
            self._close_socket()
        self.logger.debug("Closed session to %s:%s", self.host, self.port)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else ("tls" if self._tls_active else "open")
        return f"<Session {self.host}:{self.port} {state}>"
