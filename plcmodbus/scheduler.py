"""Rate-monotonic task scheduling and small UDP helpers for periodic tasks."""

from __future__ import annotations

import socket
from collections.abc import Sequence

_UINT64_MAX = 0xFFFFFFFFFFFFFFFF


class RateMonotonicScheduler:
    """Tracks which periodic tasks are due at each base-rate step.

    Task 0 runs on every base step. Task ``n`` (``n >= 1``) runs once every
    ``ratios[n - 1]`` base steps, on the steps where its counter is zero.
    Call :meth:`due_tasks` before :meth:`tick` on each base step.
    """

    def __init__(self, base_period: float, ratios: Sequence[int]) -> None:
        if base_period <= 0:
            raise ValueError(f"base period must be positive, got {base_period}")
        ratios = tuple(ratios)
        for ratio in ratios:
            if not isinstance(ratio, int) or ratio < 1:
                raise ValueError(f"rate ratios must be positive integers, got {ratio!r}")
        self.base_period = base_period
        self.ratios = ratios
        self._counters = [0] * len(ratios)

    def tick(self) -> None:
        """Advance every subrate counter by one base step, wrapping at its ratio."""
        self._counters = [
            (counter + 1) % ratio for counter, ratio in zip(self._counters, self.ratios)
        ]

    def is_due(self, task_id: int) -> bool:
        """Whether the task runs on the current base step."""
        if task_id == 0:
            return True
        if not 1 <= task_id <= len(self.ratios):
            raise ValueError(f"unknown task id {task_id}")
        return self._counters[task_id - 1] == 0

    def due_tasks(self) -> list[int]:
        """Ids of every task that runs on the current base step, in rate order."""
        return [task_id for task_id in range(len(self.ratios) + 1) if self.is_due(task_id)]


def send_datagram(host: str, port: int, message: str | bytes) -> int:
    """Send ``message`` as one UDP datagram and return the number of bytes sent."""
    data = message.encode() if isinstance(message, str) else bytes(message)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        return sock.sendto(data, (host, port))


def format_timestamp(microseconds: int) -> str:
    """Render an unsigned 64-bit microsecond timestamp as decimal text."""
    if not 0 <= microseconds <= _UINT64_MAX:
        raise ValueError(f"timestamp must fit in an unsigned 64-bit integer, got {microseconds}")
    return str(microseconds)