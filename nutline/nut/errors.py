"""
Exception hierarchy for the NUT client.

Server-reported failures arrive as ``ERR <CODE> [detail]`` lines and are
mapped to ``NUTServerError`` subclasses by :func:`error_for_code`. Local
failures (transport, parsing, pool) have their own branches.
"""

from typing import Dict, Optional, Type


class NUTError(Exception):
    """Base exception for NUT client errors."""
    pass


class NUTConnectionError(NUTError):
    """Exception for NUT connection errors."""
    pass


class NUTSessionClosedError(NUTConnectionError):
    """The session's connection is already closed."""
    pass


class NUTTimeoutError(NUTConnectionError):
    """A response was not complete before its deadline."""
    pass


class NUTProtocolError(NUTError):
    """A response could not be parsed."""
    pass


class NUTEmptyResponseError(NUTProtocolError):
    """The server returned fewer lines than the parser requires."""
    pass


class NUTMalformedResponseError(NUTProtocolError):
    """A response field did not have the expected shape."""
    pass


class NUTPoolClosedError(NUTError):
    """The session pool has been closed."""
    pass


class NUTPoolExhaustedError(NUTError):
    """No session became available before the acquire deadline."""
    pass


class NUTServerError(NUTError):
    """
    An ``ERR`` reply from the server.

    Attributes:
        code: The error code as sent by the server (e.g. ``ACCESS-DENIED``).
        detail: Any text following the code, or an empty string.
    """

    def __init__(self, code: str, detail: str = ""):
        self.code = code
        self.detail = detail
        message = f"{code}: {detail}" if detail else code
        super().__init__(message)


class NUTUnknownCommandError(NUTServerError):
    pass


class NUTUnknownError(NUTUnknownCommandError):
    """Catch-all for error codes this client does not know."""
    pass


class NUTInvalidArgumentError(NUTServerError):
    pass


class NUTAuthenticationError(NUTServerError):
    pass


class NUTAccessDeniedError(NUTServerError):
    pass


class NUTUnknownUPSError(NUTServerError):
    pass


class NUTUnsupportedError(NUTServerError):
    """The variable or command is unknown, read-only, or could not be set."""
    pass


class NUTAlreadyTLSError(NUTServerError):
    pass


ERROR_CODES: Dict[str, Type[NUTServerError]] = {
    "UNKNOWN-COMMAND": NUTUnknownCommandError,
    "INVALID-ARGUMENT": NUTInvalidArgumentError,
    "USERNAME-REQUIRED": NUTAuthenticationError,
    "PASSWORD-REQUIRED": NUTAuthenticationError,
    "INVALID-USERNAME": NUTAuthenticationError,
    "INVALID-PASSWORD": NUTAuthenticationError,
    "ALREADY-LOGGED-IN": NUTAuthenticationError,
    "ALREADY-SET-USERNAME": NUTAuthenticationError,
    "ALREADY-SET-PASSWORD": NUTAuthenticationError,
    "ACCESS-DENIED": NUTAccessDeniedError,
    "UNKNOWN-UPS": NUTUnknownUPSError,
    "VAR-NOT-SUPPORTED": NUTUnsupportedError,
    "CMD-NOT-SUPPORTED": NUTUnsupportedError,
    "READONLY": NUTUnsupportedError,
    "SET-FAILED": NUTUnsupportedError,
    "INVALID-VALUE": NUTUnsupportedError,
    "TOO-LONG": NUTUnsupportedError,
    "ALREADY-SSL-MODE": NUTAlreadyTLSError,
}


def error_for_code(code: Optional[str], detail: str = "") -> NUTServerError:
    """
    Build the exception for a server error code.

    Args:
        code: The code following ``ERR``. A missing code is treated as
            ``UNKNOWN-COMMAND``.
        detail: Optional text that followed the code.

    Returns:
        An instance of the mapped ``NUTServerError`` subclass, or
        ``NUTUnknownError`` for unmapped codes.
    """
    if not code:
        return NUTUnknownCommandError("UNKNOWN-COMMAND", detail)
    error_class = ERROR_CODES.get(code, NUTUnknownError)
    return error_class(code, detail)
