"""Blocking MODBUS TCP client with optional cached register tables."""

from __future__ import annotations

import logging
import select
import socket
import time
from collections.abc import Sequence

from .protocol import (
    EXCEPTION_FLAG,
    HEADER_SIZE,
    ConnectionLost,
    InvalidRequest,
    InvalidResponse,
    ModbusFunction,
    ModbusTimeout,
    build_read_request,
    build_write_multiple_request,
    build_write_single_request,
    check_function,
    pack_bits,
    pack_registers,
    unpack_bits,
    unpack_registers,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 2000
CONNECT_ATTEMPTS = 5
RETRY_DELAY = 0.1
LIVENESS_CHECK_SECONDS = 0.1

MAX_READ_BITS = 2000
MAX_READ_REGISTERS = 125
MAX_WRITE_BITS = 1968
MAX_WRITE_REGISTERS = 123

COIL_ON = 0xFF00
COIL_OFF = 0x0000


def _check_count(kind: str, count: int, limit: int) -> None:
    if not 1 <= count <= limit:
        raise ValueError(f"invalid {kind} count {count} (1-{limit} allowed)")


def _table(count: int | None, fill: bool | int) -> list | None:
    if count is None:
        return None
    if count < 0:
        raise ValueError(f"table size must not be negative, got {count}")
    return [fill] * count


class ModbusTCPClient:
    """A MODBUS TCP client.

    When table sizes are given, ``read_all`` and ``write_all`` keep local
    copies of the server's coils, discrete inputs, input registers and
    holding registers. Without them only the single read and write calls
    are available.
    """

    def __init__(
        self,
        host: str,
        port: int,
        num_coils: int | None = None,
        num_discrete_inputs: int | None = None,
        num_input_registers: int | None = None,
        num_holding_registers: int | None = None,
        start_coils: int = 0,
        start_discrete_inputs: int = 0,
        start_input_registers: int = 0,
        start_holding_registers: int = 0,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms
        self._sock: socket.socket | None = None
        self._transaction_id = 1

        self._coils_read = _table(num_coils, False)
        self._coils_write = _table(num_coils, False)
        self._discrete_inputs = _table(num_discrete_inputs, False)
        self._input_registers = _table(num_input_registers, 0)
        self._holding_read = _table(num_holding_registers, 0)
        self._holding_write = _table(num_holding_registers, 0)

        self.set_start_addresses(
            start_coils,
            start_discrete_inputs,
            start_input_registers,
            start_holding_registers,
        )

    def set_start_addresses(
        self,
        start_coils: int,
        start_discrete_inputs: int,
        start_input_registers: int,
        start_holding_registers: int,
    ) -> None:
        """Set the first server address of each table."""
        self.start_coils = start_coils
        self.start_discrete_inputs = start_discrete_inputs
        self.start_input_registers = start_input_registers
        self.start_holding_registers = start_holding_registers

    # Connection handling

    def connect(self) -> None:
        """Connect to the server, retrying a few times; raise ConnectionLost on failure."""
        if self._sock is not None:
            try:
                readable, _, _ = select.select(
                    [self._sock], [], [], LIVENESS_CHECK_SECONDS
                )
            except (OSError, ValueError):
                readable = [self._sock]
            if not readable:
                logger.info("already connected to MODBUS server")
                return
            logger.warning("connection lost, reconnecting")
            self.disconnect()

        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            logger.info("connecting to MODBUS server (try %d)", attempt)
            try:
                sock = socket.create_connection(
                    (self.host, self.port), timeout=self.timeout_ms / 1000
                )
            except OSError:
                logger.info("connection failed, retrying")
                time.sleep(RETRY_DELAY)
                continue
            sock.settimeout(None)
            self._sock = sock
            logger.info("connected to MODBUS server at %s:%d", self.host, self.port)
            return
        raise ConnectionLost(f"could not connect to {self.host}:{self.port}")

    def disconnect(self) -> None:
        """Close the connection if one is open."""
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None
            logger.info("disconnected from MODBUS server")

    def reconnect(self) -> None:
        """Drop the current connection and connect again."""
        logger.info("attempting manual reconnection")
        self.disconnect()
        self.connect()

    def is_connected(self) -> bool:
        """Whether a connection is open."""
        return self._sock is not None

    def close(self) -> None:
        """Close the connection."""
        self.disconnect()

    def __enter__(self) -> ModbusTCPClient:
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Transport

    def _next_transaction_id(self) -> int:
        self._transaction_id = (self._transaction_id + 1) & 0xFFFF
        return self._transaction_id

    def _send(self, request: bytes) -> None:
        if self._sock is None:
            logger.info("not connected, attempting to connect")
            self.connect()
        assert self._sock is not None
        try:
            self._sock.sendall(request)
        except OSError as exc:
            self.disconnect()
            raise ConnectionLost("write failed, connection lost") from exc

    def _receive(self, size: int) -> bytes:
        received = bytearray()
        while len(received) < size:
            sock = self._sock
            if sock is None:
                raise ConnectionLost("not connected")
            try:
                ready, _, _ = select.select([sock], [], [], self.timeout_ms / 1000)
            except (OSError, ValueError) as exc:
                self.disconnect()
                raise ConnectionLost("waiting for response failed") from exc
            if not ready:
                self.disconnect()
                raise ModbusTimeout("timeout waiting for MODBUS response")
            try:
                chunk = sock.recv(size - len(received))
            except OSError as exc:
                self.disconnect()
                raise ConnectionLost("connection lost while reading") from exc
            if not chunk:
                self.disconnect()
                raise ConnectionLost("connection closed by server")
            received += chunk
        return bytes(received)

    def _read(
        self, function: ModbusFunction, address: int, count: int, data_size: int
    ) -> bytes:
        request = build_read_request(
            self._next_transaction_id(), function, address, count
        )
        self._send(request)
        header = self._receive(HEADER_SIZE)
        body = b""
        if not header[7] & EXCEPTION_FLAG:
            body = self._receive(data_size)
        check_function(header, function)
        return body

    def _write(self, request: bytes, compared: int, skipped: frozenset[int]) -> None:
        self._send(request)
        header = self._receive(HEADER_SIZE)
        if header[7] & EXCEPTION_FLAG:
            check_function(header, ModbusFunction(request[7]))
        response = header + self._receive(12 - HEADER_SIZE)
        for index in range(compared):
            if index not in skipped and request[index] != response[index]:
                raise InvalidResponse("response does not match request")

    # Reads

    def read_coil(self, address: int) -> bool:
        """Read one coil."""
        data = self._read(ModbusFunction.READ_COIL, address, 1, 1)
        return unpack_bits(data, 1)[0]

    def read_coils(self, address: int, count: int) -> list[bool]:
        """Read ``count`` coils starting at ``address``."""
        _check_count("coil", count, MAX_READ_BITS)
        data = self._read(ModbusFunction.READ_COIL, address, count, (count + 7) // 8)
        return unpack_bits(data, count)

    def read_discrete_input(self, address: int) -> bool:
        """Read one discrete input."""
        data = self._read(ModbusFunction.READ_DISCRETE_INPUT, address, 1, 1)
        return unpack_bits(data, 1)[0]

    def read_discrete_inputs(self, address: int, count: int) -> list[bool]:
        """Read ``count`` discrete inputs starting at ``address``."""
        _check_count("discrete input", count, MAX_READ_BITS)
        data = self._read(
            ModbusFunction.READ_DISCRETE_INPUT, address, count, (count + 7) // 8
        )
        return unpack_bits(data, count)

    def read_holding_register(self, address: int) -> int:
        """Read one holding register."""
        data = self._read(ModbusFunction.READ_HOLDING_REGISTER, address, 1, 2)
        return unpack_registers(data, 1)[0]

    def read_holding_registers(self, address: int, count: int) -> list[int]:
        """Read ``count`` holding registers starting at ``address``."""
        _check_count("holding register", count, MAX_READ_REGISTERS)
        data = self._read(
            ModbusFunction.READ_HOLDING_REGISTER, address, count, count * 2
        )
        return unpack_registers(data, count)

    def read_input_register(self, address: int) -> int:
        """Read one input register."""
        data = self._read(ModbusFunction.READ_INPUT_REGISTER, address, 1, 2)
        return unpack_registers(data, 1)[0]

    def read_input_registers(self, address: int, count: int) -> list[int]:
        """Read ``count`` input registers starting at ``address``."""
        _check_count("input register", count, MAX_READ_REGISTERS)
        data = self._read(ModbusFunction.READ_INPUT_REGISTER, address, count, count * 2)
        return unpack_registers(data, count)

    # Writes

    def write_coil(self, address: int, value: bool) -> None:
        """Write one coil; the server must echo the request."""
        request = build_write_single_request(
            self._next_transaction_id(),
            ModbusFunction.WRITE_SINGLE_COIL,
            address,
            COIL_ON if value else COIL_OFF,
        )
        self._write(request, 12, frozenset())

    def write_coils(self, address: int, values: Sequence[bool]) -> None:
        """Write consecutive coils starting at ``address``."""
        _check_count("coil", len(values), MAX_WRITE_BITS)
        request = build_write_multiple_request(
            self._next_transaction_id(),
            ModbusFunction.WRITE_MULTIPLE_COILS,
            address,
            len(values),
            pack_bits(values),
        )
        self._write(request, 10, frozenset({5}))

    def write_holding_register(self, address: int, value: int) -> None:
        """Write one holding register; the server must echo the request."""
        request = build_write_single_request(
            self._next_transaction_id(),
            ModbusFunction.WRITE_SINGLE_HOLDING_REGISTER,
            address,
            value,
        )
        self._write(request, 12, frozenset())

    def write_holding_registers(self, address: int, values: Sequence[int]) -> None:
        """Write consecutive holding registers starting at ``address``."""
        _check_count("register", len(values), MAX_WRITE_REGISTERS)
        request = build_write_multiple_request(
            self._next_transaction_id(),
            ModbusFunction.WRITE_MULTIPLE_HOLDING_REGISTERS,
            address,
            len(values),
            pack_registers(values),
        )
        self._write(request, 10, frozenset({5}))

    # Cached tables

    def read_all(self) -> None:
        """Refresh every configured table from the server."""
        if (
            self._coils_read is None
            and self._discrete_inputs is None
            and self._input_registers is None
            and self._holding_read is None
        ):
            raise InvalidRequest("read_all() needs table sizes given to the client")
        if self._coils_read is not None:
            self._coils_read[:] = self.read_coils(
                self.start_coils, len(self._coils_read)
            )
        if self._discrete_inputs is not None:
            self._discrete_inputs[:] = self.read_discrete_inputs(
                self.start_discrete_inputs, len(self._discrete_inputs)
            )
        if self._input_registers is not None:
            self._input_registers[:] = self.read_input_registers(
                self.start_input_registers, len(self._input_registers)
            )
        if self._holding_read is not None:
            self._holding_read[:] = self.read_holding_registers(
                self.start_holding_registers, len(self._holding_read)
            )

    def write_all(self) -> None:
        """Write every desired coil and holding register to the server."""
        if self._coils_write is None and self._holding_write is None:
            raise InvalidRequest("write_all() needs table sizes given to the client")
        if self._coils_write is not None:
            self.write_coils(self.start_coils, self._coils_write)
        if self._holding_write is not None:
            self.write_holding_registers(
                self.start_holding_registers, self._holding_write
            )

    def set_coil(self, address: int, value: bool) -> None:
        """Set the desired state of a coil; out-of-range addresses are ignored."""
        table = self._coils_write
        if table is not None and 0 <= address < len(table):
            table[address] = bool(value)

    def set_holding_register(self, address: int, value: int) -> None:
        """Set the desired value of a holding register; out-of-range addresses are ignored."""
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"register value must be in 0..65535, got {value}")
        table = self._holding_write
        if table is not None and 0 <= address < len(table):
            table[address] = value

    @staticmethod
    def _lookup(table: list | None, address: int, default):
        if table is not None and 0 <= address < len(table):
            return table[address]
        return default

    def coil(self, address: int) -> bool:
        """Last coil state read from the server."""
        return self._lookup(self._coils_read, address, False)

    def desired_coil(self, address: int) -> bool:
        """Coil state waiting to be written."""
        return self._lookup(self._coils_write, address, False)

    def discrete_input(self, address: int) -> bool:
        """Last discrete input state read from the server."""
        return self._lookup(self._discrete_inputs, address, False)

    def holding_register(self, address: int) -> int:
        """Last holding register value read from the server."""
        return self._lookup(self._holding_read, address, 0)

    def desired_holding_register(self, address: int) -> int:
        """Holding register value waiting to be written."""
        return self._lookup(self._holding_write, address, 0)

    def input_register(self, address: int) -> int:
        """Last input register value read from the server."""
        return self._lookup(self._input_registers, address, 0)