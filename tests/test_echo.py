import io
import socket
import ssl
import threading

from dilithium.echo import handle_echo_connection, run_echo_client, serve_echo


def _pair():
    a, b = socket.socketpair()
    a.settimeout(5)
    b.settimeout(5)
    return a, b


def _recv_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _start_echo_peer(sock):
    t = threading.Thread(target=handle_echo_connection, args=(sock,), daemon=True)
    t.start()
    return t


class _FakeListener:
    def __init__(self, items):
        self.items = list(items)

    def accept(self):
        item = self.items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def test_handle_echo_connection_echoes_complete_lines():
    client, server = _pair()
    client.sendall(b"one\ntwo\nrest")
    client.shutdown(socket.SHUT_WR)
    assert handle_echo_connection(server) == 2
    assert _recv_all(client) == b"one\ntwo\n"
    client.close()


def test_handle_echo_connection_closes_on_empty_stream():
    client, server = _pair()
    client.shutdown(socket.SHUT_WR)
    assert handle_echo_connection(server) == 0
    assert client.recv(16) == b""
    client.close()


def test_serve_echo_skips_handshake_errors_and_stops_when_listener_fails():
    client, server = _pair()
    listener = _FakeListener([ssl.SSLError("handshake"), server, OSError("closed")])
    result = serve_echo(listener)
    assert result is None
    assert listener.items == []
    client.sendall(b"ping\n")
    data = b""
    while not data.endswith(b"\n"):
        data += client.recv(64)
    assert data == b"ping\n"
    client.close()


def test_run_echo_client_round_trip():
    client, server = _pair()
    peer = _start_echo_peer(server)
    out = io.StringIO()
    lines = ["hello\n", "world\n"]
    assert run_echo_client(client, lines, out) == len(lines)
    peer.join(5)
    assert out.getvalue() == "".join(lines)


def test_run_echo_client_drops_unterminated_line():
    client, server = _pair()
    _start_echo_peer(server)
    out = io.StringIO()
    assert run_echo_client(client, ["first\n", "tail"], out) == 2
    assert out.getvalue() == "first\n"


def test_run_echo_client_accepts_bytes():
    client, server = _pair()
    _start_echo_peer(server)
    out = io.StringIO()
    run_echo_client(client, [b"raw\n"], out)
    assert out.getvalue() == "raw\n"