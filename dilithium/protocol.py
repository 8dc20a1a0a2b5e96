"""Stream transports selectable by name: plain TCP and TLS over TCP."""

from __future__ import annotations

import datetime
import ipaddress
import os
import socket
import ssl
import tempfile
from dataclasses import dataclass
from typing import Callable

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

ALPN_PROTOCOL = "dilithium"


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"resolve address: missing port in address [{address}]")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"resolve address: invalid port [{port}]") from None
    if not 0 <= port_number <= 0xFFFF:
        raise ValueError(f"resolve address: invalid port [{port}]")
    return host, port_number


class _Listener:
    """A listening socket whose ``accept`` returns just the connection."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    @property
    def address(self) -> tuple[str, int]:
        return self._sock.getsockname()[:2]

    def accept(self) -> socket.socket:
        conn, _ = self._sock.accept()
        return conn

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> _Listener:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _bind(address: str) -> socket.socket:
    host, port = _parse_address(address)
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


def _connect(address: str) -> socket.socket:
    host, port = _parse_address(address)
    return socket.create_connection((host or "localhost", port))


def _listen_tcp(address: str) -> _Listener:
    return _Listener(_bind(address))


def _dial_tcp(address: str) -> socket.socket:
    return _connect(address)


def _listen_tls(address: str) -> _Listener:
    context = generate_tls_context(server=True)
    return _Listener(context.wrap_socket(_bind(address), server_side=True))


def _dial_tls(address: str) -> socket.socket:
    context = generate_tls_context(server=False)
    sock = _connect(address)
    try:
        return context.wrap_socket(sock, server_hostname=None)
    except BaseException:
        sock.close()
        raise


def generate_tls_context(server: bool) -> ssl.SSLContext:
    """Build a context holding a fresh self-signed certificate, skipping peer checks."""
    # 2048 bits: current TLS libraries refuse smaller RSA keys by default.
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    now = datetime.datetime.now(datetime.timezone.utc)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, ALPN_PROTOCOL)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(1)
        .not_valid_before(now - datetime.timedelta(hours=24))
        .not_valid_after(now + datetime.timedelta(hours=24))
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.IPAddress(ipaddress.IPv4Address("127.0.0.1"))]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    context = ssl.SSLContext(
        ssl.PROTOCOL_TLS_SERVER if server else ssl.PROTOCOL_TLS_CLIENT
    )
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.set_alpn_protocols([ALPN_PROTOCOL])

    with tempfile.TemporaryDirectory() as directory:
        cert_path = os.path.join(directory, "cert.pem")
        key_path = os.path.join(directory, "key.pem")
        with open(cert_path, "wb") as f:
            f.write(cert.public_bytes(serialization.Encoding.PEM))
        with open(key_path, "wb") as f:
            f.write(
                key.private_bytes(
                    serialization.Encoding.PEM,
                    serialization.PrivateFormat.TraditionalOpenSSL,
                    serialization.NoEncryption(),
                )
            )
        context.load_cert_chain(cert_path, key_path)
    return context


@dataclass(frozen=True)
class Protocol:
    """A named transport that can listen for and dial stream connections."""

    name: str
    listener: Callable[[str], _Listener]
    dialer: Callable[[str], socket.socket]

    def listen(self, address: str) -> _Listener:
        """Listen at ``host:port``; the result's ``accept`` yields connections."""
        return self.listener(address)

    def dial(self, address: str) -> socket.socket:
        """Connect to ``host:port``."""
        return self.dialer(address)


def protocol_for(protocol: str) -> Protocol:
    """Return the transport called ``protocol``."""
    if protocol == "tcp":
        return Protocol("tcp", _listen_tcp, _dial_tcp)
    if protocol == "tls":
        return Protocol("tls", _listen_tls, _dial_tls)
    raise ValueError(f"unsupported protocol [{protocol}]")