"""
Request/response rules of the NUT network protocol.

Commands are single lines. ``LIST`` commands answer with a header line, zero
or more entries and an ``END <command>`` sentinel; every other command
answers with exactly one line. A first line of ``ERR <CODE> [detail]``
denotes a failure.
"""

from typing import List, Sequence

from .errors import error_for_code

DEFAULT_PORT = 3493

LISTING_PREFIX = "LIST "
ERROR_PREFIX = "ERR "

OK = "OK"
OK_STARTTLS = "OK STARTTLS"
OK_FSD = "OK FSD-SET"
LOGOUT_REPLIES = ("OK Goodbye", "Goodbye...")


def is_listing_command(command: str) -> bool:
    """Return True if ``command`` answers with a multi-line block."""
    return command.strip().startswith(LISTING_PREFIX)


def sentinel_for(command: str) -> str:
    """The line that closes the listing response to ``command``."""
    return f"END {command.strip()}"


def raise_for_error(lines: Sequence[str]) -> None:
    """
    Raise the mapped ``NUTServerError`` if the response is an ``ERR`` line.

    Args:
        lines: The response lines, as returned by the framer.
    """
    if not lines or not lines[0].startswith(ERROR_PREFIX):
        return
    parts = lines[0].split(" ", 2)
    code = parts[1] if len(parts) > 1 else ""
    detail = parts[2] if len(parts) > 2 else ""
    raise error_for_code(code, detail)


def listing_entries(lines: Sequence[str]) -> List[str]:
    """The entry lines of a listing response, without header and sentinel."""
    if len(lines) < 2:
        return []
    return list(lines[1:-1])
