"""
NUT protocol engine: framing, sessions, devices and the session pool.
"""

from nutline.nut.client import NUTClient
from nutline.nut.errors import (
    NUTAccessDeniedError,
    NUTAlreadyTLSError,
    NUTAuthenticationError,
    NUTConnectionError,
    NUTEmptyResponseError,
    NUTError,
    NUTInvalidArgumentError,
    NUTMalformedResponseError,
    NUTPoolClosedError,
    NUTPoolExhaustedError,
    NUTProtocolError,
    NUTServerError,
    NUTSessionClosedError,
    NUTTimeoutError,
    NUTUnknownCommandError,
    NUTUnknownError,
    NUTUnknownUPSError,
    NUTUnsupportedError,
)
from nutline.nut.models import Command, SessionMetrics, TypeInfo, ValueKind, Variable
from nutline.nut.pool import PoolConfig, SessionPool
from nutline.nut.quoting import quote_name
from nutline.nut.session import Session, SessionOptions
from nutline.nut.ups import UPS, infer_value

__all__ = [
    "NUTClient",
    "NUTAccessDeniedError",
    "NUTAlreadyTLSError",
    "NUTAuthenticationError",
    "NUTConnectionError",
    "NUTEmptyResponseError",
    "NUTError",
    "NUTInvalidArgumentError",
    "NUTMalformedResponseError",
    "NUTPoolClosedError",
    "NUTPoolExhaustedError",
    "NUTProtocolError",
    "NUTServerError",
    "NUTSessionClosedError",
    "NUTTimeoutError",
    "NUTUnknownCommandError",
    "NUTUnknownError",
    "NUTUnknownUPSError",
    "NUTUnsupportedError",
    "Command",
    "SessionMetrics",
    "TypeInfo",
    "ValueKind",
    "Variable",
    "PoolConfig",
    "SessionPool",
    "quote_name",
    "Session",
    "SessionOptions",
    "UPS",
    "infer_value",
]
