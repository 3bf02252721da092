"""
Line framing over a NUT connection.

Reads and writes newline-terminated text and decides when a response is
complete: after one line for ordinary commands, or at the ``END`` sentinel
for listings.
"""

import logging
import socket
import time
from typing import List, Optional

from .errors import NUTConnectionError, NUTTimeoutError
from .models import SessionMetrics

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


class LineFramer:
    """
    Buffered line reader and writer bound to one socket.

    The framer owns a buffered reader created from the socket. After a
    timeout the reader's position is undefined and the framer must not be
    used again.
    """

    def __init__(self, sock: socket.socket, read_timeout: float, metrics: Optional[SessionMetrics] = None):
        self._sock = sock
        self._reader = sock.makefile("rb")
        self.read_timeout = read_timeout
        self.metrics = metrics if metrics is not None else SessionMetrics()

    def write_line(self, text: str) -> int:
        """Send ``text`` followed by a newline and return the bytes written."""
        data = (text + "\n").encode(ENCODING)
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise NUTConnectionError(f"Failed to send command: {e}") from e
        self.metrics.bytes_sent += len(data)
        return len(data)

    def read_line(self, deadline: Optional[float] = None) -> str:
        """
        Read one line and return it without its trailing newline.

        Raises:
            NUTTimeoutError: If ``deadline`` (a ``time.monotonic()`` value)
                passes before a full line arrives.
            NUTConnectionError: If the connection is closed or fails.
        """
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise NUTTimeoutError("Timed out waiting for response")
            self._sock.settimeout(remaining)
        try:
            raw = self._reader.readline()
        except socket.timeout as e:
            raise NUTTimeoutError("Timed out waiting for response") from e
        except OSError as e:
            raise NUTConnectionError(f"Error reading response: {e}") from e
        if not raw:
            raise NUTConnectionError("Connection closed by server")

        if raw.endswith(b"\n"):
            raw = raw[:-1]
        self.metrics.bytes_received += len(raw) + 1
        return raw.decode(ENCODING, errors="replace")

    def read_response(self, end_line: str, multi_line: bool) -> List[str]:
        """
        Read a complete response.

        Args:
            end_line: The sentinel that closes a multi-line response.
            multi_line: Whether the response is a listing.

        Returns:
            All lines of the response, sentinel included.
        """
        deadline = time.monotonic() + self.read_timeout if self.read_timeout else None
        lines: List[str] = []
        while True:
            line = self.read_line(deadline)
            lines.append(line)
            if not multi_line or line == end_line:
                break
        logger.debug("Read %d response line(s)", len(lines))
        return lines

    def close(self) -> None:
        try:
            self._reader.close()
        except OSError:
            logger.debug("Ignoring error while closing reader", exc_info=True)
