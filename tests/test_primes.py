import threading

import pytest

from primedist.primes import PrimeTask, is_prime, split_range


@pytest.mark.parametrize("n", [-5, 0, 1, 4, 6, 8, 9, 15, 25, 49, 121])
def test_non_primes(n):
    assert is_prime(n) is False


@pytest.mark.parametrize("n", [2, 3, 5, 7, 11, 13, 97])
def test_small_primes(n):
    assert is_prime(n) is True


@pytest.mark.parametrize("p,q", [(5, 7), (101, 103), (997, 1009), (7919, 7919)])
def test_products_of_primes_are_composite(p, q):
    assert is_prime(p) and is_prime(q)
    assert is_prime(p * q) is False


def test_primes_below_hundred_count():
    assert len([n for n in range(100) if is_prime(n)]) == 25


def test_stop_event_makes_search_fail():
    stop = threading.Event()
    stop.set()
    assert is_prime(97, stop) is False
    # Numbers decided before the loop are unaffected.
    assert is_prime(3, stop) is True
    assert is_prime(9, stop) is False


def test_progress_values_are_bounded():
    reported = []
    result = is_prime(1_000_003, on_progress=reported.append)
    assert result is True
    assert all(isinstance(value, int) and 0 <= value <= 99 for value in reported)


def test_split_range_covers_whole_range():
    ranges = split_range(1, 1_000_000, 7)
    assert len(ranges) == 7
    assert ranges[0][0] == 1
    assert ranges[-1][1] == 1_000_000
    for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
        assert next_start == prev_end + 1
    assert sum(e - s + 1 for s, e in ranges) == 1_000_000


def test_split_range_last_part_takes_remainder():
    ranges = split_range(1, 10, 3)
    assert ranges == [(1, 3), (4, 6), (7, 10)]


def test_split_range_single_part():
    assert split_range(5, 9, 1) == [(5, 9)]


def test_split_range_more_parts_than_numbers():
    ranges = split_range(10, 11, 4)
    assert ranges[-1] == (10, 11)
    assert all(e < s for s, e in ranges[:-1])


def test_split_range_rejects_bad_arguments():
    with pytest.raises(ValueError):
        split_range(1, 10, 0)
    with pytest.raises(ValueError):
        split_range(10, 1, 2)


def test_task_finds_primes_and_reports_them():
    found = []
    finished = []
    task = PrimeTask(1, 200, on_prime=found.append, on_finished=finished.append)
    result = task.run()
    assert result == [n for n in range(1, 201) if is_prime(n)]
    assert found == result
    assert finished == [result]
    assert task.primes == result


def test_tasks_over_split_ranges_match_whole_range():
    whole = PrimeTask(1, 5000).run()
    pieces = []
    for start, end in split_range(1, 5000, 4):
        pieces.extend(PrimeTask(start, end).run())
    assert pieces == whole


def test_stopped_task_reports_empty_result():
    stop = threading.Event()
    stop.set()
    finished = []
    task = PrimeTask(1, 1000, stop_event=stop, on_finished=finished.append)
    assert task.run() == []
    assert finished == [[]]


def test_task_can_be_stopped_from_callback():
    stop = threading.Event()
    found = []

    def on_prime(p):
        found.append(p)
        if len(found) == 3:
            stop.set()

    result = PrimeTask(1, 10_000, stop_event=stop, on_prime=on_prime).run()
    assert result == found
    assert len(result) == 3