"""
nutline - a client for the Network UPS Tools (NUT) network protocol.
"""

from nutline.nut import (
    NUTClient,
    NUTError,
    PoolConfig,
    Session,
    SessionOptions,
    SessionPool,
    UPS,
)

__version__ = "0.1.0"

__all__ = [
    "NUTClient",
    "NUTError",
    "PoolConfig",
    "Session",
    "SessionOptions",
    "SessionPool",
    "UPS",
    "__version__",
]
