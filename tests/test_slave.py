import socket
import time

import pytest

from primedist.primes import is_prime
from primedist.protocol import (
    FinishedMessage,
    MasterMessageDecoder,
    PrimeMessage,
    StopMessage,
    TaskMessage,
    encode,
)
from primedist.slave import SlaveClient


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _has_log(client, text):
    return any(text in line for line in list(client.logs))


@pytest.fixture
def slave():
    client = SlaveClient(thread_count=2)
    yield client
    client.close()


@pytest.fixture
def fake_master():
    server = socket.create_server(("127.0.0.1", 0))
    server.settimeout(5)
    yield server
    server.close()


def _connect(slave, fake_master):
    slave.connect("127.0.0.1", fake_master.getsockname()[1])
    conn, _ = fake_master.accept()
    conn.settimeout(5)
    return conn


def test_init_logs_thread_count():
    with SlaveClient(thread_count=3) as client:
        assert client.thread_count == 3
        assert client.logs[0].endswith("Slave initialized with 3 worker threads")


def test_invalid_thread_count():
    with pytest.raises(ValueError):
        SlaveClient(thread_count=0)


def test_local_calculation_finds_primes(slave):
    slave.start_calculation(1, 50)
    assert slave.wait(5)
    assert sorted(slave.primes) == [n for n in range(1, 51) if is_prime(n)]
    assert slave.progress == 100
    assert _has_log(slave, "Starting calculation with 2 threads")
    assert _has_log(slave, "Thread 0: range [1-")
    assert _has_log(slave, "Thread 1: range [")


def test_new_calculation_clears_primes(slave):
    slave.start_calculation(1, 50)
    assert slave.wait(5)
    slave.start_calculation(100, 120)
    assert slave.wait(5)
    assert sorted(slave.primes) == [n for n in range(100, 121) if is_prime(n)]


def test_invalid_range_rejected(slave):
    with pytest.raises(ValueError):
        slave.start_calculation(10, 5)
    with pytest.raises(ValueError):
        slave.start_calculation(-5, 5)


def test_disconnect_stops_local_calculation(slave):
    slave.start_calculation(1, 10**12)
    slave.disconnect()
    assert slave.wait(10)
    assert not slave.connected


def test_connect_failure_raises_and_logs(slave):
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(OSError):
        slave.connect("127.0.0.1", port)
    assert _has_log(slave, "Socket error:")
    assert not slave.connected


def test_task_from_master_reports_primes(slave, fake_master):
    conn = _connect(slave, fake_master)
    try:
        assert slave.connected
        assert _has_log(slave, "Connected to master")
        conn.sendall(encode(TaskMessage(1, 40)))

        decoder = MasterMessageDecoder()
        reported = []
        finished = []
        while len(finished) < slave.thread_count:
            data = conn.recv(4096)
            assert data
            for message in decoder.feed(data):
                if isinstance(message, PrimeMessage):
                    reported.append(message.prime)
                elif isinstance(message, FinishedMessage):
                    finished.append(message.count)

        expected = [n for n in range(1, 41) if is_prime(n)]
        assert sorted(reported) == expected
        assert sum(finished) == len(expected)
        assert _has_log(slave, "Received calculation task: range [1-40]")
        assert slave.wait(5)
        assert sorted(slave.primes) == expected
    finally:
        conn.close()


def test_stop_from_master(slave, fake_master):
    conn = _connect(slave, fake_master)
    try:
        conn.sendall(encode(TaskMessage(1, 10**12)))
        assert _wait_until(lambda: _has_log(slave, "Starting calculation"))
        conn.sendall(encode(StopMessage()))
        assert _wait_until(lambda: _has_log(slave, "Calculation stopped by master"))
        assert slave.wait(10)
        assert slave.connected
    finally:
        conn.close()


def test_master_closing_disconnects(slave, fake_master):
    conn = _connect(slave, fake_master)
    conn.close()
    assert _wait_until(lambda: not slave.connected)
    assert _wait_until(lambda: _has_log(slave, "Disconnected from master"))
    assert slave.progress == 0


def test_disconnect_closes_socket(slave, fake_master):
    conn = _connect(slave, fake_master)
    try:
        slave.disconnect()
        assert not slave.connected
        assert conn.recv(1) == b""
        assert _has_log(slave, "Disconnected from master")
    finally:
        conn.close()


def test_connect_twice_raises(slave, fake_master):
    conn = _connect(slave, fake_master)
    try:
        with pytest.raises(RuntimeError):
            slave.connect("127.0.0.1", fake_master.getsockname()[1])
    finally:
        conn.close()