"""Slave side: receives ranges from the master and searches them in threads."""

from __future__ import annotations

import concurrent.futures
import os
import socket
import threading
from collections.abc import Callable
from datetime import datetime

from primedist.primes import PrimeTask, split_range
from primedist.protocol import (
    FinishedMessage,
    PrimeMessage,
    SlaveMessageDecoder,
    StopMessage,
    TaskMessage,
    encode,
)

_RECV_SIZE = 4096
_LOG_EVERY = 100


def _timestamped(message: str) -> str:
    return datetime.now().strftime("[%H:%M:%S] ") + message


class SlaveClient:
    """Connects to a master and searches the ranges it sends with a thread pool."""

    def __init__(
        self,
        thread_count: int | None = None,
        on_log: Callable[[str], None] | None = None,
    ) -> None:
        count = thread_count if thread_count is not None else (os.cpu_count() or 1)
        if count < 1:
            raise ValueError("thread_count must be at least 1")
        self.thread_count = count
        self.on_log = on_log
        self.logs: list[str] = []
        self.primes: list[int] = []
        self.progress = 0
        self._lock = threading.RLock()
        self._send_lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._reader: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=count, thread_name_prefix="prime-worker"
        )
        self._futures: list[concurrent.futures.Future] = []
        self._log(f"Slave initialized with {count} worker threads")

    def __enter__(self) -> SlaveClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        """Whether a connection to the master is open."""
        with self._lock:
            return self._socket is not None

    def _log(self, message: str) -> None:
        line = _timestamped(message)
        with self._lock:
            self.logs.append(line)
        if self.on_log is not None:
            self.on_log(line)

    def connect(self, host: str, port: int) -> None:
        """Open a connection to the master at ``host:port``."""
        if self.connected:
            raise RuntimeError("already connected")
        self._log(f"Connecting to master at {host}:{port}")
        try:
            sock = socket.create_connection((host, port))
        except OSError as exc:
            self._log(f"Socket error: {exc}")
            raise
        with self._lock:
            self._socket = sock
        self._log("Connected to master")
        self._reader = threading.Thread(
            target=self._read_loop, args=(sock,), name="slave-reader", daemon=True
        )
        self._reader.start()

    def disconnect(self) -> None:
        """Stop the running calculation and close the connection."""
        self._stop_event.set()
        with self._lock:
            sock = self._socket
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join()

    def close(self) -> None:
        """Disconnect and wait for the worker threads to finish."""
        self.disconnect()
        self._executor.shutdown(wait=True)

    def start_calculation(self, start: int, end: int) -> None:
        """Split ``[start, end]`` across the worker threads and start them."""
        if start < 0:
            raise ValueError("range start must not be negative")
        ranges = split_range(start, end, self.thread_count)
        self._stop_event.clear()
        with self._lock:
            self.primes.clear()
            self.progress = 0
        self._log(f"Starting calculation with {self.thread_count} threads")
        for index, (part_start, part_end) in enumerate(ranges):
            self._log(f"Thread {index}: range [{part_start}-{part_end}]")
            task = PrimeTask(
                part_start,
                part_end,
                stop_event=self._stop_event,
                on_prime=self._prime_found,
                on_finished=self._calculation_finished,
                on_progress=self._update_progress,
            )
            future = self._executor.submit(task.run)
            with self._lock:
                self._futures.append(future)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the submitted tasks; True if all finished within ``timeout``."""
        with self._lock:
            futures = list(self._futures)
        _, not_done = concurrent.futures.wait(futures, timeout=timeout)
        return not not_done

    def _send(self, message: object) -> None:
        with self._lock:
            sock = self._socket
        if sock is None:
            return
        with self._send_lock:
            try:
                sock.sendall(encode(message))
            except OSError:
                pass

    def _update_progress(self, percent: int) -> None:
        with self._lock:
            self.progress = percent

    def _prime_found(self, prime: int) -> None:
        with self._lock:
            self.primes.append(prime)
            count = len(self.primes)
        self._send(PrimeMessage(prime))
        if count % _LOG_EVERY == 0:
            self._log(f"Found {count} prime numbers so far")

    def _calculation_finished(self, primes: list[int]) -> None:
        self._log(f"Calculation finished. Found {len(primes)} prime numbers")
        with self._lock:
            self.progress = 100
        self._send(FinishedMessage(len(primes)))

    def _read_loop(self, sock: socket.socket) -> None:
        decoder = SlaveMessageDecoder()
        while True:
            try:
                data = sock.recv(_RECV_SIZE)
            except OSError:
                data = b""
            if not data:
                break
            for message in decoder.feed(data):
                self._handle_message(message)
        self._handle_disconnected(sock)

    def _handle_message(self, message: object) -> None:
        if isinstance(message, TaskMessage):
            self._log(
                f"Received calculation task: range [{message.start}-{message.end}]"
            )
            try:
                self.start_calculation(message.start, message.end)
            except ValueError as exc:
                self._log(f"Rejected calculation task: {exc}")
        elif isinstance(message, StopMessage):
            self._stop_event.set()
            self._log("Calculation stopped by master")

    def _handle_disconnected(self, sock: socket.socket) -> None:
        with self._lock:
            if self._socket is sock:
                self._socket = None
        sock.close()
        self._stop_event.set()
        self._log("Disconnected from master")
        with self._lock:
            self.progress = 0