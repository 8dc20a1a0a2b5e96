"""Line echo server and client over a stream connection."""

from __future__ import annotations

import logging
import socket
import ssl
import threading
from typing import Any, Iterable, TextIO

log = logging.getLogger(__name__)


def _peer(conn: Any) -> str:
    try:
        return str(conn.getpeername())
    except (OSError, AttributeError):
        return "?"


def handle_echo_connection(conn: socket.socket) -> int:
    """Write every complete line read from ``conn`` back to it, then close it.

    Returns the number of lines echoed. A trailing line without a newline is
    treated as a read error and is not echoed.
    """
    count = 0
    try:
        with conn.makefile("rb") as reader:
            for line in reader:
                if not line.endswith(b"\n"):
                    log.error("error reading (unexpected end of stream)")
                    break
                conn.sendall(line)
                count += 1
            else:
                log.error("error reading (end of stream)")
    except OSError as e:
        log.error("error echoing (%s)", e)
    finally:
        conn.close()
    return count


def serve_echo(listener: Any) -> None:
    """Accept connections and echo each one in its own thread.

    Failed TLS handshakes are logged and skipped; any other accept error means
    the listener is gone and ends the loop.
    """
    while True:
        try:
            conn = listener.accept()
        except ssl.SSLError as e:
            log.error("error accepting (%s)", e)
            continue
        except OSError as e:
            log.error("error accepting (%s)", e)
            return
        log.info("accepted connection from [%s]", _peer(conn))
        threading.Thread(
            target=handle_echo_connection, args=(conn,), daemon=True
        ).start()


def _copy_lines(conn: socket.socket, out: TextIO) -> None:
    try:
        with conn.makefile("rb") as reader:
            for line in reader:
                if not line.endswith(b"\n"):
                    break
                out.write(line.decode("utf-8", errors="replace"))
                out.flush()
    except (OSError, ValueError) as e:
        log.error("error reading network (%s)", e)


def run_echo_client(
    conn: socket.socket, lines: Iterable[str | bytes], out: TextIO
) -> int:
    """Send ``lines`` over ``conn`` while copying every received line to ``out``.

    Returns the number of lines sent. The connection is closed on return.
    """
    reader = threading.Thread(target=_copy_lines, args=(conn, out), daemon=True)
    reader.start()
    sent = 0
    try:
        for line in lines:
            data = line.encode("utf-8") if isinstance(line, str) else bytes(line)
            try:
                conn.sendall(data)
            except OSError as e:
                log.error("error writing network (%s)", e)
                break
            sent += 1
        if not isinstance(conn, ssl.SSLSocket):
            try:
                conn.shutdown(socket.SHUT_WR)
            except OSError:
                pass
            else:
                reader.join()
    finally:
        conn.close()
    return sent