import ipaddress
import socket
import ssl
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest
from click.testing import CliRunner
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from nutline.nut import protocol
from nutline.nut.session import Session, SessionOptions


@dataclass
class Reply:
    """A scripted server reply; ``close`` drops the connection afterwards."""

    lines: Sequence[str] = ()
    close: bool = False


# A reply of None makes the server stay silent. Callables get the command
# line and a dict that lives as long as the connection.
Script = Dict[str, Union[Sequence[str], Reply, Callable[[str, Dict[str, Any]], Sequence[str]], None]]

DEFAULT_SCRIPT: Script = {
    "VER": ["Network UPS Tools upsd 2.8.0 - http://www.networkupstools.org/"],
    "NETVER": ["1.3"],
    "LOGOUT": ["OK Goodbye"],
}


class FakeNUTServer:
    """
    A line-oriented NUT server on 127.0.0.1 answering from a script.

    With a ``tls_context`` the connection switches to TLS after the server
    answers ``OK STARTTLS``.
    """

    def __init__(self, script: Script, tls_context: Optional[ssl.SSLContext] = None):
        self.script: Script = {**DEFAULT_SCRIPT, **script}
        self.tls_context = tls_context
        self.received: List[str] = []
        self.connections = 0
        self._stopped = threading.Event()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.1)
        self.host, self.port = self._sock.getsockname()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self.connections += 1
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _reply_for(self, line: str, state: Dict[str, Any]) -> Union[Sequence[str], Reply, None]:
        reply = self.script.get(line, ["ERR UNKNOWN-COMMAND"])
        if callable(reply):
            reply = reply(line, state)
        return reply

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(None)
        state: Dict[str, Any] = {}
        reader = conn.makefile("rb")
        try:
            while True:
                raw = reader.readline()
                if not raw:
                    return
                line = raw.decode("utf-8").rstrip("\n")
                self.received.append(line)
                reply = self._reply_for(line, state)
                if reply is None:
                    continue
                close = False
                if isinstance(reply, Reply):
                    reply, close = reply.lines, reply.close
                conn.sendall("".join(f"{out}\n" for out in reply).encode("utf-8"))
                if close:
                    conn.shutdown(socket.SHUT_RDWR)
                    return
                if self.tls_context is not None and list(reply) == [protocol.OK_STARTTLS]:
                    reader.close()
                    conn = self.tls_context.wrap_socket(conn, server_side=True)
                    reader = conn.makefile("rb")
        except OSError:
            return
        finally:
            reader.close()
            conn.close()

    def close(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=1)
        self._sock.close()


def _write_certificates(directory: Path) -> Tuple[Path, Path, Path]:
    """Write a throwaway CA and a server certificate for 127.0.0.1."""
    now = datetime.now(timezone.utc)

    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "nutline test CA")])
    ca_ski = x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key())
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(ca_name)
        .issuer_name(ca_name)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(ca_ski, critical=False)
        .sign(ca_key, hashes.SHA256())
    )

    server_key = ec.generate_private_key(ec.SECP256R1())
    server_cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "127.0.0.1")]))
        .issuer_name(ca_name)
        .public_key(server_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.SubjectAlternativeName([x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]), critical=False)
        .add_extension(x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(server_key.public_key()), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ca_ski), critical=False)
        .sign(ca_key, hashes.SHA256())
    )

    ca_file = directory / "ca.pem"
    cert_file = directory / "server.pem"
    key_file = directory / "server.key"
    ca_file.write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    cert_file.write_bytes(server_cert.public_bytes(serialization.Encoding.PEM))
    key_file.write_bytes(
        server_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return ca_file, cert_file, key_file


@pytest.fixture(scope="session")
def tls_contexts(tmp_path_factory):
    """A ``(server, client)`` pair of SSL contexts sharing a test CA."""
    ca_file, cert_file, key_file = _write_certificates(tmp_path_factory.mktemp("tls"))
    server_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    server_context.load_cert_chain(cert_file, key_file)
    client_context = ssl.create_default_context(cafile=str(ca_file))
    return server_context, client_context


def listing(command: str, *entries: str) -> List[str]:
    """Build a full listing response for ``command``."""
    return [f"BEGIN {command}", *entries, protocol.sentinel_for(command)]


@pytest.fixture
def nut_server():
    """Factory fixture starting fake NUT servers that are closed after the test."""
    servers: List[FakeNUTServer] = []

    def start(script: Script = None, tls_context: Optional[ssl.SSLContext] = None) -> FakeNUTServer:
        server = FakeNUTServer(script or {}, tls_context)
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()


@pytest.fixture
def connect(nut_server):
    """Connect a real Session to a fake server; sessions are closed after the test."""
    sessions: List[Session] = []

    def _connect(script: Script = None, **options) -> Session:
        server = nut_server(script)
        session = Session.connect(server.host, server.port, SessionOptions(**options))
        session.server = server
        sessions.append(session)
        return session

    yield _connect
    for session in sessions:
        if not session.closed:
            session._shutdown()


class FakeSession:
    """
    Stand-in for Session used by UPS tests.

    Answers commands from a script and applies the protocol's error mapping
    like a real session does.
    """

    def __init__(self, script: Dict[str, Union[Sequence[str], Exception]]):
        self.script = script
        self.sent: List[str] = []
        self.closed = False

    def send_command(self, command: str) -> List[str]:
        self.sent.append(command)
        reply = self.script.get(command, ["ERR UNKNOWN-COMMAND"])
        if isinstance(reply, Exception):
            raise reply
        lines = list(reply)
        protocol.raise_for_error(lines)
        return lines


@pytest.fixture
def fake_session():
    def build(script):
        return FakeSession(script)
    return build


@pytest.fixture
def cli_runner():
    return CliRunner()
