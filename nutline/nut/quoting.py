"""
Quoting rules for names and values embedded in NUT commands.
"""

from typing import Optional, Tuple


def _needs_quoting(ch: str) -> bool:
    return ch == '"' or ch.isspace() or not ch.isprintable()


def escape_value(value: str) -> str:
    """Escape backslashes, then double quotes."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def quote_name(name: str) -> str:
    """
    Quote a UPS, variable or command name for use in a command line.

    Names without whitespace, control characters or double quotes are
    returned unchanged.
    """
    if any(_needs_quoting(ch) for ch in name):
        return f'"{escape_value(name)}"'
    return name


def unquote_name(text: str) -> str:
    """Reverse :func:`quote_name`."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        result = read_quoted(text)
        if result is not None:
            return result[0]
    return text


def read_quoted(text: str) -> Optional[Tuple[str, str]]:
    """
    Read the first double-quoted segment of ``text``.

    Backslash escapes inside the segment are resolved. An unterminated
    segment runs to the end of the text.

    Returns:
        ``(value, remainder)`` where remainder is whatever follows the closing
        quote, or None if ``text`` holds no quote at all.
    """
    start = text.find('"')
    if start < 0:
        return None

    chars = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            chars.append(text[i + 1])
            i += 2
            continue
        if ch == '"':
            return "".join(chars), text[i + 1:]
        chars.append(ch)
        i += 1
    return "".join(chars), ""
