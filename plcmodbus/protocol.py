"""MODBUS TCP frame building and parsing."""

from __future__ import annotations

import struct
from collections.abc import Iterable
from enum import IntEnum

PROTOCOL_ID = 0x0000
UNIT_ID = 0x01
HEADER_SIZE = 9
EXCEPTION_FLAG = 0x80


class ModbusFunction(IntEnum):
    """MODBUS function codes supported by the client."""

    READ_COIL = 0x01
    READ_DISCRETE_INPUT = 0x02
    READ_HOLDING_REGISTER = 0x03
    READ_INPUT_REGISTER = 0x04
    WRITE_SINGLE_COIL = 0x05
    WRITE_SINGLE_HOLDING_REGISTER = 0x06
    WRITE_MULTIPLE_COILS = 0x0F
    WRITE_MULTIPLE_HOLDING_REGISTERS = 0x10


class ModbusError(Exception):
    """Base class for every MODBUS failure."""


class ModbusTimeout(ModbusError):
    """No response arrived from the server in time."""


class InvalidResponse(ModbusError):
    """The response does not match the request."""


class ConnectionLost(ModbusError):
    """The connection to the server is broken."""


class ExceptionResponse(ModbusError):
    """The server answered with a MODBUS exception code."""

    def __init__(self, code: int) -> None:
        super().__init__(f"MODBUS exception code {code:02X}")
        self.code = code


class InvalidRequest(ModbusError):
    """The request cannot be made in the client's current configuration."""


def _check_u16(name: str, value: int) -> int:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be in 0..65535, got {value}")
    return value


def _header(transaction_id: int, length: int, function: ModbusFunction) -> bytes:
    return struct.pack(
        ">HHHBB",
        transaction_id & 0xFFFF,
        PROTOCOL_ID,
        length,
        UNIT_ID,
        int(function),
    )


def build_read_request(
    transaction_id: int, function: ModbusFunction, start: int, quantity: int
) -> bytes:
    """Build a 12-byte read request for ``quantity`` items from ``start``."""
    return _header(transaction_id, 6, function) + struct.pack(
        ">HH", _check_u16("start", start), _check_u16("quantity", quantity)
    )


def build_write_single_request(
    transaction_id: int, function: ModbusFunction, address: int, value: int
) -> bytes:
    """Build a 12-byte request writing one coil or register."""
    return _header(transaction_id, 6, function) + struct.pack(
        ">HH", _check_u16("address", address), _check_u16("value", value)
    )


def build_write_multiple_request(
    transaction_id: int,
    function: ModbusFunction,
    address: int,
    count: int,
    payload: bytes,
) -> bytes:
    """Build a request writing ``count`` items whose packed data is ``payload``."""
    payload = bytes(payload)
    if len(payload) > 0xFF:
        raise ValueError(f"payload too long: {len(payload)} bytes (max 255)")
    return (
        _header(transaction_id, 7 + len(payload), function)
        + struct.pack(
            ">HHB",
            _check_u16("address", address),
            _check_u16("count", count),
            len(payload),
        )
        + payload
    )


def pack_bits(values: Iterable[bool]) -> bytes:
    """Pack booleans into bytes, eight per byte, least significant bit first."""
    flags = [bool(v) for v in values]
    packed = bytearray((len(flags) + 7) // 8)
    for index, flag in enumerate(flags):
        if flag:
            packed[index // 8] |= 1 << (index % 8)
    return bytes(packed)


def unpack_bits(data: bytes, count: int) -> list[bool]:
    """Unpack ``count`` booleans from bytes packed least significant bit first."""
    if len(data) < (count + 7) // 8:
        raise InvalidResponse(f"{len(data)} bytes cannot hold {count} bits")
    return [bool((data[i // 8] >> (i % 8)) & 0x01) for i in range(count)]


def pack_registers(values: Iterable[int]) -> bytes:
    """Pack 16-bit register values big-endian."""
    return b"".join(
        _check_u16("register value", v).to_bytes(2, "big") for v in values
    )


def unpack_registers(data: bytes, count: int) -> list[int]:
    """Unpack ``count`` big-endian 16-bit registers."""
    if len(data) < count * 2:
        raise InvalidResponse(f"{len(data)} bytes cannot hold {count} registers")
    return list(struct.unpack(f">{count}H", bytes(data[: count * 2])))


def check_function(response: bytes, function: ModbusFunction) -> None:
    """Raise if ``response`` is an exception reply or answers another function."""
    if len(response) < HEADER_SIZE:
        raise InvalidResponse(f"response too short: {len(response)} bytes")
    code = response[7]
    if code & EXCEPTION_FLAG:
        raise ExceptionResponse(response[8])
    if code != int(function):
        raise InvalidResponse(
            f"unexpected function code (expected {int(function):02X}, got {code:02X})"
        )