"""Command-line front end: run as master or as slave and drive it with commands."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Iterable
from typing import TextIO

from primedist.master import MasterServer
from primedist.slave import SlaveClient

DEFAULT_PORT = 12345
DEFAULT_HOST = "127.0.0.1"
MASTER_TITLE = "Prime Calculator - Master Mode"
SLAVE_TITLE = "Prime Calculator - Slave Mode"

_MODES = ("master", "slave")
_QUIT_WORDS = frozenset({"quit", "exit"})

MASTER_HELP = """\
Commands:
  start [PORT]            start listening (default: the --port value)
  stop                    disconnect all slaves and stop listening
  status                  show whether the server is running
  clients                 list connected slaves
  distribute [START END]  split the range between the connected slaves
  count                   show how many primes were found
  primes                  print the primes found
  sort                    toggle ascending/descending order of the primes
  verify                  compare the prime count with x / ln(x)
  quit                    stop the server and exit"""

SLAVE_HELP = """\
Commands:
  connect [HOST [PORT]]   connect to a master
  disconnect              stop calculating and close the connection
  status                  show connection, progress and prime count
  wait [SECONDS]          wait for the running calculation to finish
  quit                    disconnect and exit"""


class _CommandError(Exception):
    """A command was used with the wrong arguments."""


Handler = Callable[[list[str]], None]


def _printer(out: TextIO) -> Callable[[str], None]:
    def say(line: str) -> None:
        print(line, file=out, flush=True)

    return say


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _parse_port(text: str) -> int:
    try:
        port = int(text)
    except ValueError as exc:
        raise _CommandError(f"Invalid port: {text}") from exc
    if not 0 <= port <= 65535:
        raise _CommandError(f"Invalid port: {text}")
    return port


def _parse_bound(text: str, error: str) -> int:
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(error) from exc


def _command_loop(
    stdin: Iterable[str],
    commands: dict[str, Handler],
    err: TextIO,
) -> None:
    for line in stdin:
        words = line.split()
        if not words:
            continue
        name, *rest = words
        if name in _QUIT_WORDS:
            break
        handler = commands.get(name)
        if handler is None:
            print(f"Unknown command: {name}", file=err, flush=True)
            continue
        try:
            handler(rest)
        except (_CommandError, ValueError, RuntimeError, OSError) as exc:
            print(f"Error: {exc}", file=err, flush=True)


def _master_commands(
    server: MasterServer, default_port: int, say: Callable[[str], None]
) -> dict[str, Handler]:
    def start(rest: list[str]) -> None:
        if len(rest) > 1:
            raise _CommandError("usage: start [PORT]")
        server.start(_parse_port(rest[0]) if rest else default_port)

    def stop(rest: list[str]) -> None:
        server.stop()

    def status(rest: list[str]) -> None:
        if server.running:
            say(f"Server running on port {server.port}")
        else:
            say("Server not running")

    def clients(rest: list[str]) -> None:
        addresses = server.clients
        if not addresses:
            say("No connected slaves")
        for address in addresses:
            say(address)

    def distribute(rest: list[str]) -> None:
        if len(rest) not in (0, 2):
            raise _CommandError("usage: distribute [START END]")
        if not server.clients:
            raise RuntimeError("No connected slaves to distribute work")
        if rest:
            start_value = _parse_bound(rest[0], "Invalid range start value")
            end_value = _parse_bound(rest[1], "Invalid range end value")
        else:
            start_value, end_value = server.range_start, server.range_end
        server.distribute(start_value, end_value)

    def count(rest: list[str]) -> None:
        say(f"Found: {len(server.primes)}")

    def primes(rest: list[str]) -> None:
        say(" ".join(str(prime) for prime in list(server.primes)))

    def sort(rest: list[str]) -> None:
        server.toggle_sort()

    def verify(rest: list[str]) -> None:
        say(server.verify().message)

    def show_help(rest: list[str]) -> None:
        say(MASTER_HELP)

    return {
        "start": start,
        "stop": stop,
        "status": status,
        "clients": clients,
        "distribute": distribute,
        "count": count,
        "primes": primes,
        "sort": sort,
        "verify": verify,
        "help": show_help,
    }


def _run_master(args: argparse.Namespace, stdin: TextIO, out: TextIO, err: TextIO) -> int:
    say = _printer(out)
    say(MASTER_TITLE)
    say("Master mode active")
    server = MasterServer(on_log=say)
    try:
        server.start(args.port)
    except OSError as exc:
        print(f"Error: {exc}", file=err, flush=True)
    try:
        _command_loop(stdin, _master_commands(server, args.port, say), err)
    finally:
        server.stop()
    return 0


def _slave_commands(
    client: SlaveClient, args: argparse.Namespace, say: Callable[[str], None]
) -> dict[str, Handler]:
    def connect(rest: list[str]) -> None:
        if len(rest) > 2:
            raise _CommandError("usage: connect [HOST [PORT]]")
        host = rest[0] if rest else args.host
        port = _parse_port(rest[1]) if len(rest) > 1 else args.port
        client.connect(host, port)

    def disconnect(rest: list[str]) -> None:
        client.disconnect()

    def status(rest: list[str]) -> None:
        say("Connected to master" if client.connected else "Not connected")
        say(f"Progress: {client.progress}%")
        say(f"Primes found: {len(client.primes)}")

    def wait(rest: list[str]) -> None:
        if len(rest) > 1:
            raise _CommandError("usage: wait [SECONDS]")
        try:
            timeout = float(rest[0]) if rest else None
        except ValueError as exc:
            raise _CommandError(f"Invalid timeout: {rest[0]}") from exc
        if client.wait(timeout):
            say("All tasks finished")
        else:
            say("Calculation still running")

    def show_help(rest: list[str]) -> None:
        say(SLAVE_HELP)

    return {
        "connect": connect,
        "disconnect": disconnect,
        "status": status,
        "wait": wait,
        "help": show_help,
    }


def _run_slave(args: argparse.Namespace, stdin: TextIO, out: TextIO, err: TextIO) -> int:
    say = _printer(out)
    say(SLAVE_TITLE)
    say("Slave mode active")
    with SlaveClient(thread_count=args.threads, on_log=say) as client:
        try:
            client.connect(args.host, args.port)
        except OSError as exc:
            print(f"Error: {exc}", file=err, flush=True)
            return 1
        _command_loop(stdin, _slave_commands(client, args, say), err)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="primedist",
        description="Search for primes across several machines.",
    )
    modes = parser.add_subparsers(dest="mode")

    master = modes.add_parser("master", help="hand out ranges and collect primes")
    master.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")

    slave = modes.add_parser("slave", help="search the ranges sent by a master")
    slave.add_argument("--host", default=DEFAULT_HOST, help="master address")
    slave.add_argument("--port", type=int, default=DEFAULT_PORT, help="master port")
    slave.add_argument(
        "--threads",
        type=_positive_int,
        default=None,
        help="worker threads (default: number of CPUs)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run in master mode (the default) or slave mode, reading commands from stdin."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    if not arguments or arguments[0] not in (*_MODES, "-h", "--help"):
        arguments.insert(0, "master")
    args = _build_parser().parse_args(arguments)
    if args.mode == "slave":
        return _run_slave(args, sys.stdin, sys.stdout, sys.stderr)
    return _run_master(args, sys.stdin, sys.stdout, sys.stderr)


if __name__ == "__main__":
    sys.exit(main())