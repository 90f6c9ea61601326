# plcmodbus

plcmodbus is a compact Modbus TCP client for talking to PLCs. It uses only the
standard library.

The client keeps a local image of a PLC's coils, discrete inputs, input
registers and holding registers. One call refreshes the image. You read values
out of it, stage the values you want written, and push them with a second call.
Single requests are also available, such as reading one coil or writing a
block of registers.

The package also has a small rate-monotonic scheduler. It works out which
periodic tasks are due on each base-rate tick.

## Installation

```
pip install plcmodbus
```

To run the tests:

```
pip install "plcmodbus[test]"
pytest
```

## Using the client

```python
from plcmodbus.client import ModbusTCPClient
from plcmodbus.protocol import ModbusError

with ModbusTCPClient(
    "192.0.2.10",
    5020,
    num_coils=10,
    num_discrete_inputs=10,
    num_input_registers=10,
    num_holding_registers=10,
    timeout_ms=1000,
) as plc:
    try:
        plc.read_all()
    except ModbusError as exc:
        print("poll failed:", exc)
    else:
        print("holding register 0:", plc.holding_register(0))
        print("coil 3:", plc.coil(3))

    plc.set_coil(0, True)
    plc.set_holding_register(1, 1234)
    plc.write_all()
```

Entering the `with` block connects to the server and leaving it closes the
connection. You can also call `connect()`, `disconnect()`, `reconnect()`,
`is_connected()` and `close()` yourself. `connect()` makes up to five attempts
before it gives up. Any request that is sent while no connection is open
connects first.

`timeout_ms` sets how long the client waits for a response. The default is
2000 ms.

`read_all()` and `write_all()` start each table at its own start address. Every
start address is `0` unless you pass others to the constructor or change them
with `set_start_addresses()`. A table only exists if its size was passed to the
constructor. `read_all()` and `write_all()` skip the tables that do not exist.

These accessors return values from the most recent `read_all()`:

- `coil`
- `discrete_input`
- `input_register`
- `holding_register`

`desired_coil` and `desired_holding_register` return the values staged for the
next `write_all()`.

An address outside a table reads as `False` or `0`, and setting one has no
effect. `set_holding_register` raises `ValueError` for a value outside
0..65535.

### Single requests

```python
plc.read_coil(5)                       # bool
plc.read_coils(0, 16)                  # list of bools
plc.read_discrete_inputs(0, 8)         # list of bools
plc.read_holding_registers(100, 4)     # list of ints
plc.read_input_register(7)             # int
plc.write_coil(5, True)
plc.write_coils(0, [True, False, True])
plc.write_holding_register(10, 42)
plc.write_holding_registers(200, [1, 2, 3])
```

The server must echo back each write. If it does not, the client raises
`InvalidResponse`. Each request accepts only a limited number of items. A count
outside these ranges raises `ValueError`:

| Request | Allowed count |
|---|---|
| Read coils or discrete inputs | 1 to 2000 |
| Read registers | 1 to 125 |
| Write coils | 1 to 1968 |
| Write registers | 1 to 123 |

### Errors

Every protocol or connection failure raises a subclass of
`plcmodbus.protocol.ModbusError`:

- `ModbusTimeout`: no complete response arrived before the timeout. The client drops the connection, and the next request reconnects.
- `InvalidResponse`: the response does not match the request.
- `ExceptionResponse`: the server answered with a Modbus exception. The exception code is in its `code` attribute.
- `ConnectionLost`: the client could not connect, or the connection broke during a request.
- `InvalidRequest`: the client was created without any of the tables that `read_all()` or `write_all()` needs.

### Building frames by hand

`plcmodbus.protocol` holds the frame builders and codecs that the client uses:

- `build_read_request`
- `build_write_single_request`
- `build_write_multiple_request`
- `pack_bits` and `unpack_bits`
- `pack_registers` and `unpack_registers`
- `check_function`

The `ModbusFunction` enum lists the function codes the package supports.

## Scheduling periodic tasks

```python
from plcmodbus.scheduler import RateMonotonicScheduler

# Base period 0.1 s; subrate tasks every 7, 10 and 300 base ticks.
sched = RateMonotonicScheduler(0.1, (7, 10, 300))
for _ in range(20):
    print(sched.due_tasks())
    sched.tick()
```

Task `0` runs on every tick. Task `n` runs on the ticks where its counter is
zero. `is_due(task_id)` checks a single task.

`send_datagram(host, port, message)` sends a UDP datagram and returns the
number of bytes sent. `format_timestamp(microseconds)` renders an unsigned
64-bit microsecond timestamp as decimal text.

## Command line

The package installs a `plcmodbus` command. The command connects to a Modbus
server and polls it with `read_all()`. After each poll it prints holding
register 0:

```
plcmodbus --host 192.0.2.10 --port 5020 --period 1 --steps 5
```

| Option | Meaning | Default |
|---|---|---|
| `--host` | Server address | `192.168.0.129` |
| `--port` | Server port | `5020` |
| `--coils` | Coil table size | `10` |
| `--discrete-inputs` | Discrete input table size | `10` |
| `--input-registers` | Input register table size | `10` |
| `--holding-registers` | Holding register table size | `10` |
| `--period` | Seconds between polls | `10` |
| `--steps` | Number of polls | unlimited |
| `--verbose` | Log connection activity | off |

The same loop is available from Python as `plcmodbus.app.run(client, period,
steps)`, which returns the values it read. `plcmodbus.app.poll_once(client)`
performs a single poll.

## Limitations

plcmodbus is a client only. It does not include:

- a Modbus server or simulator;
- support for Modbus RTU or serial links;
- a way to write values from the command line.