import socket
from collections import Counter

import pytest

from plcmodbus.scheduler import RateMonotonicScheduler, format_timestamp, send_datagram


def _scheduler():
    # 0.1 s base rate with subrates of 0.7 s, 1.0 s and 30 s.
    return RateMonotonicScheduler(0.1, (7, 10, 300))


def _advance(scheduler, steps):
    for _ in range(steps):
        scheduler.tick()


def test_all_tasks_due_at_start():
    assert _scheduler().due_tasks() == [0, 1, 2, 3]


def test_only_base_task_after_one_tick():
    scheduler = _scheduler()
    scheduler.tick()
    assert scheduler.due_tasks() == [0]


def test_base_task_always_due():
    scheduler = _scheduler()
    for _ in range(20):
        scheduler.tick()
        assert scheduler.is_due(0) is True


def test_first_subrate_wraps_after_seven_steps():
    scheduler = _scheduler()
    _advance(scheduler, 6)
    assert scheduler.is_due(1) is False
    scheduler.tick()
    assert scheduler.is_due(1) is True
    assert scheduler.due_tasks() == [0, 1]


def test_second_subrate_wraps_after_ten_steps():
    scheduler = _scheduler()
    _advance(scheduler, 10)
    assert scheduler.due_tasks() == [0, 2]


def test_first_and_second_together_after_seventy_steps():
    scheduler = _scheduler()
    _advance(scheduler, 70)
    assert scheduler.due_tasks() == [0, 1, 2]


def test_third_subrate_wraps_after_three_hundred_steps():
    scheduler = _scheduler()
    _advance(scheduler, 299)
    assert scheduler.is_due(3) is False
    scheduler.tick()
    assert scheduler.due_tasks() == [0, 2, 3]


def test_subrate_runs_expected_number_of_times():
    scheduler = _scheduler()
    record = []
    for _ in range(600):
        record.extend(scheduler.due_tasks())
        scheduler.tick()
    assert Counter(record) == {0: 600, 1: 86, 2: 60, 3: 2}


def test_unknown_task_id_rejected():
    scheduler = _scheduler()
    with pytest.raises(ValueError):
        scheduler.is_due(4)
    with pytest.raises(ValueError):
        scheduler.is_due(-1)


@pytest.mark.parametrize("ratios", [(0,), (7, -1), (2.5,)])
def test_invalid_ratios_rejected(ratios):
    with pytest.raises(ValueError):
        RateMonotonicScheduler(0.1, ratios)


def test_invalid_base_period_rejected():
    with pytest.raises(ValueError):
        RateMonotonicScheduler(0, (7,))


def test_no_subrates_only_base_task():
    scheduler = RateMonotonicScheduler(10.0, ())
    scheduler.tick()
    assert scheduler.due_tasks() == [0]


@pytest.mark.parametrize(
    "value, text",
    [(0, "0"), (1234567, "1234567"), (18446744073709551615, "18446744073709551615")],
)
def test_format_timestamp(value, text):
    assert format_timestamp(value) == text


@pytest.mark.parametrize("value", [-1, 18446744073709551616])
def test_format_timestamp_out_of_range(value):
    with pytest.raises(ValueError):
        format_timestamp(value)


def test_send_datagram_delivers_text():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as receiver:
        receiver.bind(("127.0.0.1", 0))
        receiver.settimeout(2)
        port = receiver.getsockname()[1]
        sent = send_datagram("127.0.0.1", port, "Hello from PX4 very fast!")
        data, _ = receiver.recvfrom(1024)
    assert sent == len("Hello from PX4 very fast!")
    assert data == b"Hello from PX4 very fast!"


def test_send_datagram_delivers_bytes():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as receiver:
        receiver.bind(("127.0.0.1", 0))
        receiver.settimeout(2)
        port = receiver.getsockname()[1]
        sent = send_datagram("127.0.0.1", port, format_timestamp(42).encode())
        data, _ = receiver.recvfrom(1024)
    assert sent == 2
    assert data == b"42"