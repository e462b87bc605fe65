"""Master side: hands out ranges to connected slaves and collects primes."""

from __future__ import annotations

import math
import operator
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from primedist.primes import split_range
from primedist.protocol import (
    FinishedMessage,
    MasterMessageDecoder,
    PrimeMessage,
    TaskMessage,
    encode,
)

DEFAULT_RANGE_START = 1
DEFAULT_RANGE_END = 1_000_000

_U64_MAX = 2**64 - 1
_ACCEPT_POLL_SECONDS = 0.2
_RECV_SIZE = 4096


def _timestamped(message: str) -> str:
    return datetime.now().strftime("[%H:%M:%S] ") + message


def prime_count_approximation(x: int) -> float:
    """Estimate the number of primes not above ``x`` as ``x / ln(x)``."""
    if x < 2:
        return 0.0
    return x / math.log(x)


def _as_bound(value: int, error: str) -> int:
    if isinstance(value, bool):
        raise ValueError(error)
    try:
        number = operator.index(value)
    except TypeError as exc:
        raise ValueError(error) from exc
    if not 0 <= number <= _U64_MAX:
        raise ValueError(error)
    return number


@dataclass(frozen=True)
class VerificationResult:
    """Found prime count compared with the prime number theorem estimate."""

    found: int
    approximation: float
    difference: float

    @property
    def message(self) -> str:
        """Human readable summary of the comparison."""
        return (
            f"Primes found: {self.found}\n"
            f"Mathematical approximation: {self.approximation:.2f}\n"
            f"Difference: {self.difference:.2f}%"
        )


class MasterServer:
    """TCP server that splits a range between slaves and gathers their primes."""

    def __init__(
        self,
        on_log: Callable[[str], None] | None = None,
        on_prime: Callable[[int], None] | None = None,
    ) -> None:
        self.on_log = on_log
        self.on_prime = on_prime
        self.logs: list[str] = []
        self.primes: list[int] = []
        self.range_start = DEFAULT_RANGE_START
        self.range_end = DEFAULT_RANGE_END
        self.sort_ascending = True
        self.port: int | None = None
        self._lock = threading.RLock()
        self._running = threading.Event()
        self._server: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._clients: dict[socket.socket, str] = {}

    def __enter__(self) -> MasterServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        """Whether the server is listening."""
        return self._running.is_set()

    @property
    def clients(self) -> list[str]:
        """Addresses of the connected slaves, in connection order."""
        with self._lock:
            return list(self._clients.values())

    def _log(self, message: str) -> None:
        line = _timestamped(message)
        with self._lock:
            self.logs.append(line)
        if self.on_log is not None:
            self.on_log(line)

    def start(self, port: int) -> None:
        """Listen on all interfaces at ``port`` (0 picks a free one)."""
        if self.running:
            raise RuntimeError("server is already running")
        try:
            server = socket.create_server(("", port))
        except OSError as exc:
            raise OSError(f"Could not start server: {exc}") from exc
        server.settimeout(_ACCEPT_POLL_SECONDS)
        self._server = server
        self.port = server.getsockname()[1]
        self._running.set()
        self._accept_thread = threading.Thread(
            target=self._accept_loop, args=(server,), name="master-accept", daemon=True
        )
        self._accept_thread.start()
        self._log(f"Server started on port {self.port}")

    def stop(self) -> None:
        """Disconnect every slave and stop listening."""
        if not self.running:
            return
        self._running.clear()
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for conn in clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        if self._server is not None:
            self._server.close()
            self._server = None
        if self._accept_thread is not None:
            self._accept_thread.join()
            self._accept_thread = None
        self._log("Server stopped")

    def distribute(self, start: int, end: int) -> list[tuple[str, int, int]]:
        """Send each slave its share of ``[start, end]``.

        Returns ``(address, part_start, part_end)`` for every slave.
        """
        with self._lock:
            clients = list(self._clients.items())
        if not clients:
            raise RuntimeError("No connected slaves to distribute work")

        self.range_start = _as_bound(start, "Invalid range start value")
        self.range_end = _as_bound(end, "Invalid range end value")
        if self.range_start >= self.range_end:
            raise ValueError("Range start must be less than range end")

        parts = split_range(self.range_start, self.range_end, len(clients))
        self._log(
            f"Distributing work range [{self.range_start}-{self.range_end}] "
            f"to {len(clients)} slaves"
        )
        with self._lock:
            self.primes.clear()

        assignments = []
        for (conn, address), (part_start, part_end) in zip(clients, parts):
            try:
                conn.sendall(encode(TaskMessage(part_start, part_end)))
            except OSError:
                pass
            self._log(f"Sent range [{part_start}-{part_end}] to slave {address}")
            assignments.append((address, part_start, part_end))
        return assignments

    def verify(self) -> VerificationResult:
        """Compare the primes found with the ``x / ln(x)`` estimate."""
        with self._lock:
            found = len(self.primes)
        approximation = prime_count_approximation(
            self.range_end
        ) - prime_count_approximation(self.range_start - 1)
        if approximation == 0:
            difference = math.nan if found == 0 else math.inf
        else:
            difference = abs(found - approximation) / approximation * 100.0
        result = VerificationResult(found, approximation, difference)
        self._log(
            f"Verification: Found {found} primes, approximation: "
            f"{approximation:.2f}, difference: {difference:.2f}%"
        )
        return result

    def toggle_sort(self) -> bool:
        """Flip the sort direction, sort the primes, and return ``sort_ascending``."""
        with self._lock:
            self.sort_ascending = not self.sort_ascending
            self.primes.sort(reverse=not self.sort_ascending)
            ascending = self.sort_ascending
        if ascending:
            self._log("Sorted prime numbers in ascending order")
        else:
            self._log("Sorted prime numbers in descending order")
        return ascending

    def _accept_loop(self, server: socket.socket) -> None:
        while self._running.is_set():
            try:
                conn, peer = server.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            conn.setblocking(True)
            self._add_client(conn, peer)

    def _add_client(self, conn: socket.socket, peer: tuple) -> None:
        address = f"{peer[0]}:{peer[1]}"
        with self._lock:
            self._clients[conn] = address
        self._log(f"New client connected: {address}")
        threading.Thread(
            target=self._read_loop,
            args=(conn, address),
            name=f"master-client-{address}",
            daemon=True,
        ).start()

    def _read_loop(self, conn: socket.socket, address: str) -> None:
        decoder = MasterMessageDecoder()
        while True:
            try:
                data = conn.recv(_RECV_SIZE)
            except OSError:
                data = b""
            if not data:
                break
            for message in decoder.feed(data):
                self._handle_message(address, message)
        self._client_disconnected(conn)

    def _handle_message(self, address: str, message: object) -> None:
        if isinstance(message, PrimeMessage):
            with self._lock:
                self.primes.append(message.prime)
            if self.on_prime is not None:
                self.on_prime(message.prime)
        elif isinstance(message, FinishedMessage):
            self._log(
                f"Slave {address} finished calculation, found {message.count} primes"
            )

    def _client_disconnected(self, conn: socket.socket) -> None:
        with self._lock:
            address = self._clients.pop(conn, None)
        conn.close()
        if address is not None:
            self._log(f"Client disconnected: {address}")