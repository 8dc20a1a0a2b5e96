# dilithium

Building blocks for a reliable, sequence-numbered message transport, plus a
small command-line harness of echo, tunnel, control-socket and InfluxDB tools
that run over TCP or TLS.

## What is in the package

- `dilithium.ack` – compact encoding of acknowledgements: `Ack(start, end)`,
  `encode_acks(acks, max_size)` and `decode_acks(data)`. A single sequence
  number takes four bytes; a series of up to 127 numbers or ranges starts with
  a marker byte. Problems raise `CodecError` (a `ValueError`).
- `dilithium.hello` – the `Hello(version)` greeting with `encode_hello` and
  `decode_hello`.
- `dilithium.memory` – the `Adapter` protocol (`read`, `write`, `close`),
  reference-counted `Buffer` objects and a `Pool` that hands them out with
  `get()` and takes them back with `put(buf)`.
- `dilithium.message` – `WireMessage` with a seven byte header (sequence
  number, type and flags, payload length), the `MessageType` and
  `MessageFlag` enums, builders `new_hello`, `new_ack`, `new_data`,
  `new_keepalive` and `new_close`, decoders `as_hello`, `as_ack`, `as_data`,
  `as_data_size` and `as_keepalive`, and `read_wire_message` /
  `write_wire_message` for moving messages through an `Adapter`.
- `dilithium.algorithm` – `TxProfile`, the flow-control tunables with their
  defaults (`default_tx_profile()`, `TxProfile.new_pool(id, ii)`), and
  `TxAlgorithm`, the abstract interface a flow-control strategy implements.
- `dilithium.nilinstrument`, `dilithium.metrics`, `dilithium.instrument` –
  instrumentation. `new_instrument("nil")` records nothing;
  `new_instrument("metrics", {"path": ..., "snapshot_ms": ..., "enabled": ...})`
  starts a background snapshotter per instance that samples counters and
  gauges every `snapshot_ms` milliseconds while `enabled` is true. Recorded
  samples are read back with `MetricsInstrumentInstance.series()`. Any other
  name raises `ValueError`.
- `dilithium.protocol` – `protocol_for("tcp")` and `protocol_for("tls")`
  return a `Protocol` with `listen(address)` and `dial(address)`, addresses
  written as `host:port`. The TLS transport uses a fresh self-signed
  certificate each time (`generate_tls_context(server)`) and does not verify
  the peer.
- `dilithium.echo`, `dilithium.tunnel`, `dilithium.influx`, `dilithium.cli` –
  the harness tools behind the `dilithium` command.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Working with the wire format

```python
from dilithium.ack import Ack, encode_acks, decode_acks
from dilithium.algorithm import default_tx_profile
from dilithium.message import new_data
from dilithium.nilinstrument import NilInstrument

encoded = encode_acks([Ack(1, 1), Ack(5, 9)], 64)
acks, size = decode_acks(encoded)

ii = NilInstrument().new_instance("example")
pool = default_tx_profile().new_pool("example", ii)

wm = new_data(1, None, b"hello", pool)
payload, rtt = wm.as_data()
```

## Command line

Global options come before the subcommand: `-p/--protocol` (`tcp`, the
default, or `tls`), `-v/--verbose`, `--cpu` (counts function calls and writes
them to a file in a temporary directory) and `--memory` (writes a
`tracemalloc` snapshot the same way).

```
dilithium --help
```

An echo server and client; the client sends lines from standard input and
prints every line it gets back:

```
dilithium -p tcp echo server 127.0.0.1:6262
dilithium -p tcp echo client 127.0.0.1:6262
```

A tunnel: the client listens for plain TCP connections at its second address
and carries each one over the selected protocol to the server, which connects
it on to a TCP destination:

```
dilithium -p tcp tunnel server 127.0.0.1:6262 127.0.0.1:8080
dilithium -p tcp tunnel client 127.0.0.1:6262 127.0.0.1:9090
```

Sending a command (default `write`) to a Unix control socket and printing the
reply:

```
dilithium ctrl client ./dilithium.sock -c write
```

Dropping every measurement from an InfluxDB database; the connection options
belong to `influx` and go before `clean`:

```
dilithium influx --url http://localhost:8086 --database dilithium clean
```

## What the package does not do

- It has the message format, buffers, tunables and the `TxAlgorithm`
  interface, but no transmitter or receiver that uses them: there is no
  concrete flow-control algorithm and no reliable transport over UDP. The
  only transports are `tcp` and `tls`.
- The metrics instrument keeps its samples in memory; it does not write them
  to disk, and it does not serve a control socket. `ctrl client` only talks
  to a socket that something else provides.
- The `influx` command can only clean a database; it does not load metrics
  into it.