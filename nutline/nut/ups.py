"""
UPS devices exposed by a NUT server.

A UPS is built from a session and a device name and fetches its data with
the session's serialized command interface. It keeps only a weak reference
to the session: once the session is closed or gone, every call raises
``NUTSessionClosedError``.
"""

import logging
import re
import weakref
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

from . import protocol
from .errors import (
    NUTEmptyResponseError,
    NUTError,
    NUTMalformedResponseError,
    NUTSessionClosedError,
)
from .models import (
    BooleanValue,
    Command,
    FloatValue,
    IntegerValue,
    StringValue,
    TypeInfo,
    Variable,
    VariableValue,
)
from .quoting import escape_value, quote_name, read_quoted

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

NUMERIC_PATTERN = re.compile(r"-?[0-9]+(?:\.[0-9]+)?")


def infer_value(raw: str) -> VariableValue:
    """
    Infer the semantic type of a raw variable value.

    ``enabled``/``disabled`` become booleans, numbers become integers or
    floats depending on a decimal point, anything else stays a string.
    """
    if raw == "enabled":
        return BooleanValue(value=True)
    if raw == "disabled":
        return BooleanValue(value=False)
    if NUMERIC_PATTERN.fullmatch(raw):
        if "." in raw:
            return FloatValue(value=float(raw))
        return IntegerValue(value=int(raw))
    return StringValue(value=raw)


def parse_type(text: str) -> TypeInfo:
    """
    Parse the payload of a ``TYPE`` reply.

    Accepts ``RW <type>``/``RO <type>`` and the legacy bare ``<type>``, which
    is assumed read-only. ``STRING:<n>`` carries the maximum length.

    Raises:
        NUTMalformedResponseError: If the payload is empty, a flag has no
            type, or the string length is not a number.
    """
    tokens = text.split()
    if not tokens:
        raise NUTMalformedResponseError("Invalid TYPE response format: empty")

    if tokens[0] in ("RW", "RO"):
        if len(tokens) < 2:
            raise NUTMalformedResponseError(f"Invalid {tokens[0]} TYPE response format: {text!r}")
        writeable = tokens[0] == "RW"
        var_type = tokens[1]
    else:
        writeable = False
        var_type = tokens[0]

    maximum_length = 0
    if var_type.startswith("STRING:"):
        var_type, length = var_type.split(":", 1)
        if not length.isdigit():
            raise NUTMalformedResponseError(f"Invalid STRING length in TYPE response: {length!r}")
        maximum_length = int(length)

    return TypeInfo(var_type, writeable, maximum_length)


class UPS:
    """
    A UPS provided by the NUT instance.

    Use :meth:`lazy` or :meth:`eager` to build one from a session. The
    constructor itself performs no I/O.
    """

    def __init__(self, session: "Session", name: str):
        self.name = name
        self.description = ""
        self.master = False
        self.number_of_logins = 0
        self.clients: List[str] = []
        self.variables: List[Variable] = []
        self.commands: List[Command] = []
        self._session_ref = weakref.ref(session)

    @classmethod
    def lazy(cls, session: "Session", name: str) -> "UPS":
        """
        Build a UPS with its description and login count.

        Failures while fetching either are logged and ignored. Clients,
        variables and commands are fetched on demand.
        """
        ups = cls(session, name)
        try:
            ups.get_description()
        except NUTError as e:
            logger.warning("Could not fetch description for UPS '%s': %s", name, e)
        try:
            ups.get_number_of_logins()
        except NUTError as e:
            logger.warning("Could not fetch login count for UPS '%s': %s", name, e)
        return ups

    @classmethod
    def eager(cls, session: "Session", name: str) -> "UPS":
        """Build a UPS with all of its data. Any failure propagates."""
        ups = cls(session, name)
        ups.get_clients()
        ups.get_commands()
        ups.get_description()
        ups.get_number_of_logins()
        ups.get_variables()
        return ups

    @property
    def session(self) -> "Session":
        session = self._session_ref()
        if session is None or session.closed:
            raise NUTSessionClosedError(f"Session for UPS '{self.name}' is closed")
        return session

    @property
    def quoted_name(self) -> str:
        return quote_name(self.name)

    def _send(self, command: str) -> List[str]:
        return self.session.send_command(command)

    def _first_line(self, command: str) -> str:
        resp = self._send(command)
        if not resp:
            raise NUTEmptyResponseError(f"Empty response from {' '.join(command.split(' ', 2)[:2])}")
        return resp[0]

    def _strip_echo(self, line: str, keyword: str, *names: str) -> str:
        """Remove the ``<keyword> <ups> [names...] `` echo from a reply line."""
        for ups_name in (self.name, self.quoted_name):
            for parts in (names, tuple(quote_name(n) for n in names)):
                prefix = " ".join((keyword, ups_name) + parts) + " "
                if line.startswith(prefix):
                    return line[len(prefix):]
        return line

    def get_number_of_logins(self) -> int:
        """Return the number of clients which have done LOGIN for this UPS."""
        line = self._first_line(f"GET NUMLOGINS {self.quoted_name}")
        value = self._strip_echo(line, "NUMLOGINS").strip()
        try:
            self.number_of_logins = int(value)
        except ValueError as e:
            raise NUTMalformedResponseError(f"Invalid NUMLOGINS value: {value!r}") from e
        return self.number_of_logins

    def get_clients(self) -> List[str]:
        """Return the addresses of the clients connected to this UPS."""
        resp = self._send(f"LIST CLIENT {self.quoted_name}")
        self.clients = [self._strip_echo(line, "CLIENT") for line in protocol.listing_entries(resp)]
        return self.clients

    def check_if_master(self) -> bool:
        """Return True if the session holds master (primary) privileges."""
        resp = self._send(f"MASTER {self.quoted_name}")
        if resp[:1] == [protocol.OK]:
            self.master = True
            return True
        return False

    def get_description(self) -> str:
        """
        Return the "desc=" value from ups.conf for this UPS.

        upsd answers "Unavailable" when it is not set.
        """
        line = self._first_line(f"GET UPSDESC {self.quoted_name}")
        self.description = self._strip_echo(line, "UPSDESC").replace('"', "")
        return self.description

    def _split_variable_lines(self, lines: Sequence[str]) -> List[Tuple[str, str]]:
        pairs = []
        for line in protocol.listing_entries(lines):
            cleaned = self._strip_echo(line, "VAR")
            name, sep, _ = cleaned.partition('"')
            quoted = read_quoted(cleaned) if sep else None
            name = name.rstrip(" ")
            if quoted is None or not name:
                logger.debug("Skipping malformed VAR line for UPS '%s': %r", self.name, line)
                continue
            pairs.append((name, quoted[0].strip(" ")))
        return pairs

    def list_variable_values(self) -> Dict[str, str]:
        """Return variable names mapped to their raw values, in one round trip."""
        resp = self._send(f"LIST VAR {self.quoted_name}")
        return dict(self._split_variable_lines(resp))

    def get_variable_value(self, variable_name: str) -> str:
        """Return the raw value of one variable."""
        line = self._first_line(f"GET VAR {self.quoted_name} {quote_name(variable_name)}")
        payload = self._strip_echo(line, "VAR", variable_name)
        quoted = read_quoted(payload)
        return quoted[0] if quoted is not None else payload

    def get_variables(self) -> List[Variable]:
        """
        Return every variable of this UPS with description and type.

        Issues two extra commands per variable (GET DESC and GET TYPE).
        """
        resp = self._send(f"LIST VAR {self.quoted_name}")
        variables = []
        for name, raw in self._split_variable_lines(resp):
            description = self.get_variable_description(name)
            var_type, writeable, maximum_length = self.get_variable_type(name)
            variables.append(
                Variable(
                    name=name,
                    value=infer_value(raw),
                    description=description,
                    writeable=writeable,
                    maximum_length=maximum_length,
                    original_type=var_type,
                )
            )
        self.variables = variables
        return variables

    def get_variable_description(self, variable_name: str) -> str:
        """
        Return a brief explanation of ``variable_name``.

        upsd may answer "Unavailable" if its description file is not installed.
        """
        line = self._first_line(f"GET DESC {self.quoted_name} {quote_name(variable_name)}")
        return self._strip_echo(line, "DESC", variable_name).replace('"', "")

    def get_variable_type(self, variable_name: str) -> TypeInfo:
        """Return the type, writeability and maximum length of ``variable_name``."""
        line = self._first_line(f"GET TYPE {self.quoted_name} {quote_name(variable_name)}")
        return parse_type(self._strip_echo(line, "TYPE", variable_name))

    def get_commands(self) -> List[Command]:
        """Return the instant commands of this UPS with their descriptions."""
        resp = self._send(f"LIST CMD {self.quoted_name}")
        commands = []
        for line in protocol.listing_entries(resp):
            name = self._strip_echo(line, "CMD").strip()
            if not name:
                continue
            commands.append(Command(name=name, description=self.get_command_description(name)))
        self.commands = commands
        return commands

    def get_command_description(self, command_name: str) -> str:
        """Return a brief explanation of ``command_name``."""
        line = self._first_line(f"GET CMDDESC {self.quoted_name} {quote_name(command_name)}")
        return self._strip_echo(line, "CMDDESC", command_name).replace('"', "")

    def set_variable(self, variable_name: str, value: str) -> bool:
        """Set ``variable_name`` to ``value``. Returns True on ``OK``."""
        resp = self._send(
            f'SET VAR {self.quoted_name} {quote_name(variable_name)} "{escape_value(str(value))}"'
        )
        return resp[:1] == [protocol.OK]

    def send_command(self, command_name: str) -> bool:
        """Run an instant command. Returns True on ``OK``."""
        resp = self._send(f"INSTCMD {self.quoted_name} {quote_name(command_name)}")
        return resp[:1] == [protocol.OK]

    def force_shutdown(self) -> bool:
        """
        Set the forced-shutdown (FSD) flag on the UPS.

        Requires "upsmon master" (or the FSD action) in upsd.users. FSD is a
        latch: once set it stays set until upsd restarts or the UPS is
        re-added to ups.conf.

        Returns:
            True if the server answered ``OK FSD-SET``.
        """
        resp = self._send(f"FSD {self.quoted_name}")
        return resp[:1] == [protocol.OK_FSD]

    def __repr__(self) -> str:
        return f"<UPS {self.name!r}>"
