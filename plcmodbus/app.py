"""Periodic polling of a MODBUS server's holding register."""

from __future__ import annotations

import argparse
import logging
import time

from .client import ModbusTCPClient
from .protocol import ModbusError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "192.168.0.129"
DEFAULT_PORT = 5020
DEFAULT_TABLE_SIZE = 10
DEFAULT_PERIOD = 10.0
POLL_TIMEOUT_MS = 1000


def poll_once(client: ModbusTCPClient) -> int:
    """Connect if needed, refresh every table and return holding register 0.

    A failed connection raises; a failed refresh is logged and the last
    cached value is returned.
    """
    if not client.is_connected():
        client.timeout_ms = POLL_TIMEOUT_MS
        client.connect()
    try:
        client.read_all()
    except ModbusError as exc:
        logger.warning("reading MODBUS tables failed: %s", exc)
    return client.holding_register(0)


def run(client: ModbusTCPClient, period: float, steps: int | None = None) -> list[int]:
    """Poll every ``period`` seconds, ``steps`` times or forever; return the values read."""
    values: list[int] = []
    deadline = time.monotonic()
    step = 0
    while steps is None or step < steps:
        step += 1
        try:
            value = poll_once(client)
        except ModbusError as exc:
            logger.error("failed to connect to MODBUS server: %s", exc)
        else:
            values.append(value)
            print(f"After readAll: Holding Register: {value}")
        deadline += period
        delay = deadline - time.monotonic()
        if delay > 0 and (steps is None or step < steps):
            time.sleep(delay)
    return values


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Poll a MODBUS TCP server periodically.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--coils", type=int, default=DEFAULT_TABLE_SIZE)
    parser.add_argument("--discrete-inputs", type=int, default=DEFAULT_TABLE_SIZE)
    parser.add_argument("--input-registers", type=int, default=DEFAULT_TABLE_SIZE)
    parser.add_argument("--holding-registers", type=int, default=DEFAULT_TABLE_SIZE)
    parser.add_argument("--period", type=float, default=DEFAULT_PERIOD)
    parser.add_argument("--steps", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    client = ModbusTCPClient(
        args.host,
        args.port,
        args.coils,
        args.discrete_inputs,
        args.input_registers,
        args.holding_registers,
    )
    try:
        run(client, args.period, args.steps)
    except KeyboardInterrupt:
        logger.info("stopping")
    finally:
        client.close()
    return 0