"""Command line entry point."""

from __future__ import annotations

import argparse
import collections
import contextlib
import faulthandler
import functools
import logging
import os
import signal
import socket
import sys
import tempfile
import threading
import tracemalloc
from pathlib import Path
from typing import Any, Iterator, Sequence

from dilithium.echo import run_echo_client, serve_echo
from dilithium.influx import InfluxError, InfluxSettings, clean
from dilithium.protocol import protocol_for
from dilithium.tunnel import serve_tunnel_client, serve_tunnel_server

log = logging.getLogger(__name__)


def ctrl_client(path: str, command: str = "write") -> str:
    """Send ``command`` to the control socket at ``path`` and return its reply."""
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(path)
        sock.sendall(f"{command}\n".encode("utf-8"))
        chunks = []
        while chunk := sock.recv(4096):
            chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace")


def _print_help(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    parser.print_help()
    return 0


def _echo_server(args: argparse.Namespace) -> int:
    listener = protocol_for(args.protocol).listen(args.listen_address)
    log.info("listening at [%s]", args.listen_address)
    with listener:
        serve_echo(listener)
    return 0


def _echo_client(args: argparse.Namespace) -> int:
    conn = protocol_for(args.protocol).dial(args.server_address)
    log.info("connected to [%s]", args.server_address)
    run_echo_client(conn, sys.stdin, sys.stdout)
    return 0


def _tunnel_server(args: argparse.Namespace) -> int:
    serve_tunnel_server(
        protocol_for(args.protocol), args.listen_address, args.destination_address
    )
    return 0


def _tunnel_client(args: argparse.Namespace) -> int:
    serve_tunnel_client(
        protocol_for(args.protocol), args.server_address, args.listen_address
    )
    return 0


def _ctrl_client(args: argparse.Namespace) -> int:
    print(ctrl_client(args.path, args.command))
    return 0


def _influx_clean(args: argparse.Namespace) -> int:
    settings = InfluxSettings(
        url=args.url,
        username=args.username,
        password=args.password,
        database=args.database,
    )
    clean(settings)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every command."""
    prog = Path(sys.argv[0]).stem if sys.argv and sys.argv[0] else "dilithium"
    parser = argparse.ArgumentParser(prog=prog, description="Dilithium Matrix Scaffolding")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--cpu", action="store_true", help="Enable CPU profiling")
    parser.add_argument("--memory", action="store_true", help="Enable memory profiling")
    parser.add_argument(
        "-p", "--protocol", default="tcp", help="Select underlying protocol (tcp, tls)"
    )
    commands = parser.add_subparsers(dest="group")

    echo = commands.add_parser("echo", help="Use a dilithium conduit for simple echo")
    echo.set_defaults(handler=functools.partial(_print_help, echo))
    echo_commands = echo.add_subparsers(dest="echo_command")
    server = echo_commands.add_parser("server", help="Start echo server")
    server.add_argument("listen_address")
    server.set_defaults(handler=_echo_server)
    client = echo_commands.add_parser("client", help="Start echo client")
    client.add_argument("server_address")
    client.set_defaults(handler=_echo_client)

    tunnel = commands.add_parser("tunnel", help="Use a dilithium conduit as a tunnel")
    tunnel.set_defaults(handler=functools.partial(_print_help, tunnel))
    tunnel_commands = tunnel.add_subparsers(dest="tunnel_command")
    server = tunnel_commands.add_parser("server", help="Start tunnel server")
    server.add_argument("listen_address")
    server.add_argument("destination_address")
    server.set_defaults(handler=_tunnel_server)
    client = tunnel_commands.add_parser("client", help="Start tunnel client")
    client.add_argument("server_address")
    client.add_argument("listen_address")
    client.set_defaults(handler=_tunnel_client)

    ctrl = commands.add_parser("ctrl", help="Control instances")
    ctrl.set_defaults(handler=functools.partial(_print_help, ctrl))
    ctrl_commands = ctrl.add_subparsers(dest="ctrl_command")
    client = ctrl_commands.add_parser(
        "client", help="Connect to a metrics instance controller"
    )
    client.add_argument("path")
    client.add_argument("-c", "--command", default="write", help="Command to send")
    client.set_defaults(handler=_ctrl_client)

    defaults = InfluxSettings()
    influx = commands.add_parser("influx", help="Manage the analyzer data in InfluxDB")
    influx.add_argument("--url", default=defaults.url, help="InfluxDB URL")
    influx.add_argument("--username", default=defaults.username, help="InfluxDB Username")
    influx.add_argument("--password", default=defaults.password, help="InfluxDB Password")
    influx.add_argument("--database", default=defaults.database, help="InfluxDB Database")
    influx.set_defaults(handler=functools.partial(_print_help, influx))
    influx_commands = influx.add_subparsers(dest="influx_command")
    clean_parser = influx_commands.add_parser(
        "clean", help="Clean metrics data from previous analyzer runs"
    )
    clean_parser.set_defaults(handler=_influx_clean)

    return parser


def _install_stack_dump() -> None:
    if hasattr(signal, "SIGQUIT") and hasattr(faulthandler, "register"):
        faulthandler.register(signal.SIGQUIT, all_threads=True)


class _CallProfiler:
    """Counts function calls across all threads while active."""

    def __init__(self) -> None:
        self.calls: collections.Counter[str] = collections.Counter()

    def _hook(self, frame: Any, event: str, arg: Any) -> None:
        if event == "call":
            code = frame.f_code
            self.calls[f"{code.co_filename}:{code.co_firstlineno}:{code.co_name}"] += 1
        elif event == "c_call":
            self.calls[getattr(arg, "__qualname__", repr(arg))] += 1

    def start(self) -> None:
        threading.setprofile(self._hook)
        sys.setprofile(self._hook)

    def stop(self) -> None:
        sys.setprofile(None)
        threading.setprofile(None)  # type: ignore[arg-type]

    def dump(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            for name, count in self.calls.most_common():
                f.write(f"{count}\t{name}\n")


@contextlib.contextmanager
def _profiling(args: argparse.Namespace) -> Iterator[None]:
    profiler = None
    if args.cpu:
        profiler = _CallProfiler()
        profiler.start()
    if args.memory:
        tracemalloc.start()
    try:
        yield
    finally:
        if profiler is not None:
            profiler.stop()
            path = os.path.join(tempfile.mkdtemp(prefix="profile"), "cpu.prof")
            profiler.dump(path)
            log.info("cpu profile written to [%s]", path)
        if args.memory:
            snapshot = tracemalloc.take_snapshot()
            tracemalloc.stop()
            path = os.path.join(tempfile.mkdtemp(prefix="profile"), "mem.snapshot")
            snapshot.dump(path)
            log.info("memory profile written to [%s]", path)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command named by ``argv`` and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _install_stack_dump()
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    with _profiling(args):
        try:
            return handler(args)
        except (OSError, ValueError, InfluxError) as e:
            log.error("error (%s)", e)
            return 1


if __name__ == "__main__":
    sys.exit(main())