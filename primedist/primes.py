"""Prime testing and range splitting used by the worker threads."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

ProgressCallback = Callable[[int], None]
PrimeCallback = Callable[[int], None]
FinishedCallback = Callable[[list[int]], None]

_PROGRESS_EVERY = 1000


def is_prime(
    n: int,
    stop_event: threading.Event | None = None,
    on_progress: ProgressCallback | None = None,
) -> bool:
    """Return True if ``n`` is prime, using 6k +/- 1 trial division.

    If ``stop_event`` gets set during the search, the answer is False.
    ``on_progress`` receives a percentage estimate (at most 99) each time
    the trial divisor reaches a multiple of 1000.
    """
    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0 or n % 3 == 0:
        return False

    i = 5
    while i * i <= n:
        if stop_event is not None and stop_event.is_set():
            return False
        if n % i == 0 or n % (i + 2) == 0:
            return False
        i += 6
        if on_progress is not None and i % _PROGRESS_EVERY == 0:
            progress = i * i / n * 100.0
            on_progress(min(int(progress), 99))
    return True


def split_range(start: int, end: int, parts: int) -> list[tuple[int, int]]:
    """Split the inclusive range ``[start, end]`` into ``parts`` sub-ranges.

    Every part but the last gets ``(end - start + 1) // parts`` numbers; the
    last part runs to ``end``. When there are more parts than numbers, the
    leading parts are empty (their end lies below their start).
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")
    if end < start:
        raise ValueError("range end must not be below range start")

    per_part = (end - start + 1) // parts
    ranges = []
    for index in range(parts):
        part_start = start + index * per_part
        part_end = end if index == parts - 1 else part_start + per_part - 1
        ranges.append((part_start, part_end))
    return ranges


@dataclass
class PrimeTask:
    """Search one inclusive range for primes, reporting through callbacks."""

    start: int
    end: int
    stop_event: threading.Event = field(default_factory=threading.Event)
    on_prime: PrimeCallback | None = None
    on_finished: FinishedCallback | None = None
    on_progress: ProgressCallback | None = None
    primes: list[int] = field(init=False, default_factory=list)

    def run(self) -> list[int]:
        """Scan the range, stopping early if the stop event is set."""
        self.primes = []
        for candidate in range(self.start, self.end + 1):
            if self.stop_event.is_set():
                break
            if is_prime(candidate, self.stop_event, self.on_progress):
                self.primes.append(candidate)
                if self.on_prime is not None:
                    self.on_prime(candidate)
        if self.on_finished is not None:
            self.on_finished(list(self.primes))
        return list(self.primes)