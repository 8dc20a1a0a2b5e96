"""A tunnel that carries TCP connections across a selectable transport."""

from __future__ import annotations

import logging
import socket
import ssl
import threading
from typing import Any, Callable

from dilithium.protocol import Protocol, protocol_for

log = logging.getLogger(__name__)

BUFFER_SIZE = 16 * 1024


def _peer(conn: Any) -> str:
    try:
        return str(conn.getpeername())
    except (OSError, AttributeError):
        return "?"


def _close(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


def pump(source: socket.socket, destination: socket.socket) -> int:
    """Copy from ``source`` to ``destination`` until end of stream or an error.

    Returns the number of bytes copied.
    """
    total = 0
    while True:
        try:
            data = source.recv(BUFFER_SIZE)
        except OSError as e:
            log.error("error reading (%s)", e)
            return total
        if not data:
            return total
        try:
            destination.sendall(data)
        except OSError as e:
            log.error("error writing (%s)", e)
            return total
        total += len(data)


def _pump_and_close(source: socket.socket, destination: socket.socket) -> None:
    try:
        pump(source, destination)
    finally:
        _close(source)
        _close(destination)


def _relay(local: socket.socket, remote: socket.socket) -> None:
    threading.Thread(
        target=_pump_and_close, args=(remote, local), daemon=True
    ).start()
    try:
        pump(local, remote)
    finally:
        _close(remote)


def handle_tunnel_initiator(
    initiator: socket.socket, protocol: Protocol, server_address: str
) -> None:
    """Carry one local connection to the tunnel server at ``server_address``."""
    peer = _peer(initiator)
    log.info("tunneling for initiator at [%s]", peer)
    try:
        try:
            tunnel = protocol.dial(server_address)
        except (OSError, ValueError) as e:
            log.error("error dialing tunnel server at [%s] (%s)", server_address, e)
            return
        log.info("tunnel established to [%s]", server_address)
        _relay(initiator, tunnel)
    finally:
        _close(initiator)
        log.warning("end tunnel for initiator at [%s]", peer)


def handle_tunnel_terminator(tunnel: socket.socket, destination_address: str) -> None:
    """Carry one tunnelled connection to the TCP ``destination_address``."""
    peer = _peer(tunnel)
    log.info(
        "tunneling for tunnel at [%s] to terminator at [%s]", peer, destination_address
    )
    try:
        try:
            terminator = protocol_for("tcp").dial(destination_address)
        except (OSError, ValueError) as e:
            log.error(
                "error connecting to terminator [%s] (%s)", destination_address, e
            )
            return
        _relay(tunnel, terminator)
    finally:
        _close(tunnel)
        log.warning("end tunnel for [%s]", peer)


def _serve(listener: Any, handler: Callable[..., None], *args: Any) -> None:
    while True:
        try:
            conn = listener.accept()
        except ssl.SSLError as e:
            log.error("error accepting (%s)", e)
            continue
        except OSError as e:
            log.error("error accepting (%s)", e)
            return
        threading.Thread(target=handler, args=(conn, *args), daemon=True).start()


def serve_tunnel_client(
    protocol: Protocol, server_address: str, listen_address: str
) -> None:
    """Listen for TCP connections at ``listen_address`` and tunnel each one."""
    listener = protocol_for("tcp").listen(listen_address)
    log.info("created initiator listener at [%s]", listener.address)
    with listener:
        _serve(listener, handle_tunnel_initiator, protocol, server_address)


def serve_tunnel_server(
    protocol: Protocol, listen_address: str, destination_address: str
) -> None:
    """Accept tunnels at ``listen_address`` and connect each to the destination."""
    listener = protocol.listen(listen_address)
    log.info("created tunnel listener at [%s]", listen_address)
    with listener:
        _serve(listener, handle_tunnel_terminator, destination_address)