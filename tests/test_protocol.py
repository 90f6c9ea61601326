import pytest

from plcmodbus.protocol import (
    ExceptionResponse,
    InvalidResponse,
    ModbusError,
    ModbusFunction,
    build_read_request,
    build_write_multiple_request,
    build_write_single_request,
    check_function,
    pack_bits,
    pack_registers,
    unpack_bits,
    unpack_registers,
)


def test_function_codes_on_the_wire():
    read_frame = build_read_request(1, ModbusFunction(0x01), 0, 1)
    assert read_frame[7] == 0x01
    coils_frame = build_write_multiple_request(
        1, ModbusFunction.WRITE_MULTIPLE_COILS, 0, 1, pack_bits([True])
    )
    assert coils_frame[7] == 0x0F
    registers_frame = build_write_multiple_request(
        1, ModbusFunction.WRITE_MULTIPLE_HOLDING_REGISTERS, 0, 1, pack_registers([1])
    )
    assert registers_frame[7] == 0x10


def test_read_request_wire_bytes():
    frame = build_read_request(2, ModbusFunction.READ_HOLDING_REGISTER, 0, 10)
    assert frame == bytes([0, 2, 0, 0, 0, 6, 1, 3, 0, 0, 0, 10])


def test_read_request_big_endian_fields():
    frame = build_read_request(0x1234, ModbusFunction.READ_COIL, 0x0102, 0x0304)
    assert len(frame) == 12
    assert frame[0:2] == bytes([0x12, 0x34])
    assert frame[8:10] == bytes([0x01, 0x02])
    assert frame[10:12] == bytes([0x03, 0x04])


def test_transaction_id_wraps_to_16_bits():
    frame = build_read_request(0x10001, ModbusFunction.READ_COIL, 0, 1)
    assert frame[0:2] == bytes([0x00, 0x01])


def test_write_single_coil_on():
    frame = build_write_single_request(
        3, ModbusFunction.WRITE_SINGLE_COIL, 5, 0xFF00
    )
    assert frame == bytes([0, 3, 0, 0, 0, 6, 1, 5, 0, 5, 0xFF, 0x00])


def test_write_multiple_header_and_payload():
    payload = pack_registers([1, 2])
    frame = build_write_multiple_request(
        7, ModbusFunction.WRITE_MULTIPLE_HOLDING_REGISTERS, 4, 2, payload
    )
    assert len(frame) == 13 + len(payload)
    assert frame[5] == 7 + len(payload)
    assert frame[7] == ModbusFunction.WRITE_MULTIPLE_HOLDING_REGISTERS
    assert frame[12] == len(payload)
    assert frame[13:] == payload


def test_write_multiple_rejects_oversized_payload():
    with pytest.raises(ValueError):
        build_write_multiple_request(
            1, ModbusFunction.WRITE_MULTIPLE_COILS, 0, 8, bytes(256)
        )


def test_address_out_of_range():
    with pytest.raises(ValueError):
        build_read_request(1, ModbusFunction.READ_COIL, 70000, 1)


def test_pack_bits_lsb_first():
    assert pack_bits([True, False, False, False, False, False, False, False, True]) == bytes(
        [0x01, 0x01]
    )


@pytest.mark.parametrize(
    "values",
    [[True], [False, True, True], [True] * 8, [i % 3 == 0 for i in range(21)]],
)
def test_bits_round_trip(values):
    packed = pack_bits(values)
    assert len(packed) == (len(values) + 7) // 8
    assert unpack_bits(packed, len(values)) == values


def test_unpack_bits_too_short():
    with pytest.raises(InvalidResponse):
        unpack_bits(b"\x00", 9)


@pytest.mark.parametrize("values", [[0], [0xFFFF, 0, 258], list(range(0, 60000, 997))])
def test_registers_round_trip(values):
    packed = pack_registers(values)
    assert len(packed) == 2 * len(values)
    assert unpack_registers(packed, len(values)) == values


def test_pack_registers_big_endian():
    assert pack_registers([0x0102]) == bytes([0x01, 0x02])


def test_pack_registers_rejects_out_of_range():
    with pytest.raises(ValueError):
        pack_registers([0x10000])


def test_unpack_registers_too_short():
    with pytest.raises(InvalidResponse):
        unpack_registers(b"\x00\x01\x02", 2)


def test_check_function_accepts_matching():
    response = bytes([0, 2, 0, 0, 0, 4, 1, 3, 2, 0, 7])
    check_function(response, ModbusFunction.READ_HOLDING_REGISTER)
    assert unpack_registers(response[9:], 1) == [7]


def test_check_function_exception_response():
    response = bytes([0, 2, 0, 0, 0, 3, 1, 0x83, 0x02])
    with pytest.raises(ExceptionResponse) as info:
        check_function(response, ModbusFunction.READ_HOLDING_REGISTER)
    assert info.value.code == 0x02
    assert isinstance(info.value, ModbusError)


def test_check_function_wrong_code():
    response = bytes([0, 2, 0, 0, 0, 4, 1, 4, 2, 0, 7])
    with pytest.raises(InvalidResponse):
        check_function(response, ModbusFunction.READ_HOLDING_REGISTER)


def test_check_function_short_response():
    with pytest.raises(InvalidResponse):
        check_function(b"\x00\x01", ModbusFunction.READ_COIL)