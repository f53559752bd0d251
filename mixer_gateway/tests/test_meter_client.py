"""Tests for the Symetrix meter client against an in-process fake DSP."""

import asyncio
import logging
import socket
import struct

import pytest

from mixer_gateway.models import MeterDefinition
from mixer_gateway.services.meter_client import ConnectionState, SymetrixMeterClient

pytestmark = pytest.mark.anyio

FIXED_EPOCH = 1_700_000_000.0


@pytest.fixture
def anyio_backend():
    """Force asyncio backend to avoid trio dependency for these tests."""
    return "asyncio"


class FakeDsp:
    """Minimal TCP peer recording commands and pushing frames on demand."""

    def __init__(self):
        self.received: list[bytearray] = []
        self.writers: list[asyncio.StreamWriter] = []
        self.port = 0
        self._server: asyncio.AbstractServer | None = None

    async def start(self) -> "FakeDsp":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader, writer):
        buffer = bytearray()
        self.received.append(buffer)
        self.writers.append(writer)
        try:
            while True:
                data = await reader.read(1024)
                if not data:
                    break
                buffer.extend(data)
        except ConnectionError:
            pass

    @property
    def connection_count(self) -> int:
        return len(self.writers)

    def commands(self, index: int = -1) -> list[str]:
        text = self.received[index].decode("ascii")
        return text.split("\r")[:-1]

    async def push(self, data: bytes, index: int = -1) -> None:
        writer = self.writers[index]
        writer.write(data)
        await writer.drain()

    async def drop(self, index: int = -1) -> None:
        writer = self.writers[index]
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    async def reset(self, index: int = -1) -> None:
        """Abort the connection with a TCP RST."""
        writer = self.writers[index]
        sock = writer.get_extra_info("socket")
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        writer.transport.abort()

    async def close(self) -> None:
        for writer in self.writers:
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


def _unused_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


METERS = [
    MeterDefinition(id="vu_program", label="Program", controller=9001),
    MeterDefinition(id="vu_rec", label="Record", controller=9002),
]


@pytest.fixture
async def dsp():
    fake = await FakeDsp().start()
    yield fake
    await fake.close()


def make_client(port: int, meters=METERS, **kwargs) -> SymetrixMeterClient:
    kwargs.setdefault("reconnect_delay", 0.05)
    kwargs.setdefault("connect_timeout", 1.0)
    return SymetrixMeterClient(
        "127.0.0.1",
        meters,
        port=port,
        push_interval_ms=200,
        push_threshold=50,
        clock=lambda: FIXED_EPOCH,
        **kwargs,
    )


def _raw(client: SymetrixMeterClient, meter_id: str):
    for meter in client.snapshot().meters:
        if meter.id == meter_id:
            return meter.raw
    raise KeyError(meter_id)


async def test_configure_sequence_sent_in_order(dsp):
    """Connect should send quiet, echo, push, interval, threshold, then PUE per meter."""
    client = make_client(dsp.port)
    await client.start()
    try:
        await wait_until(lambda: dsp.connection_count == 1)
        await wait_until(lambda: len(dsp.commands()) >= 7)
        assert dsp.commands() == [
            "SQ 1",
            "EH 0",
            "PU 1",
            "PUI 200",
            "PUT 50 50",
            "PUE 9001",
            "PUE 9002",
        ]
        assert b"\n" not in dsp.received[0]

        snapshot = client.snapshot()
        assert snapshot.connected is True
        assert snapshot.last_connect_epoch == int(FIXED_EPOCH)
        assert snapshot.last_error is None
        assert client.state is ConnectionState.CONNECTED
    finally:
        await client.stop()


async def test_push_frames_update_snapshot(dsp):
    """A valid frame updates raw/lastEpoch; a malformed one leaves the value alone."""
    client = make_client(dsp.port)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        snapshot = client.snapshot()
        assert [m.raw for m in snapshot.meters] == [None, None]

        await dsp.push(b"#09001=32768\r")
        await wait_until(lambda: _raw(client, "vu_program") == 32768)
        program = client.snapshot().meters[0]
        assert program.id == "vu_program"
        assert program.last_epoch == int(FIXED_EPOCH)

        await dsp.push(b"#09001=3276\r#09002=00100\r")
        await wait_until(lambda: _raw(client, "vu_rec") == 100)
        assert _raw(client, "vu_program") == 32768
    finally:
        await client.stop()


async def test_fragmented_frame_is_reassembled(dsp):
    client = make_client(dsp.port)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await dsp.push(b"#090")
        await asyncio.sleep(0.02)
        await dsp.push(b"02=00")
        await asyncio.sleep(0.02)
        assert _raw(client, "vu_rec") is None
        await dsp.push(b"123\r#09001=00001\r")
        await wait_until(lambda: _raw(client, "vu_rec") == 123)
        assert _raw(client, "vu_program") == 1
    finally:
        await client.stop()


async def test_unknown_controller_is_ignored(dsp):
    client = make_client(dsp.port)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await dsp.push(b"#04242=00500\r#09002=00007\r")
        await wait_until(lambda: _raw(client, "vu_rec") == 7)
        assert [m.id for m in client.snapshot().meters] == ["vu_program", "vu_rec"]
        assert _raw(client, "vu_program") is None
    finally:
        await client.stop()


async def test_remote_close_schedules_single_reconnect(dsp):
    """After a close, connected drops at once and exactly one reconnect follows."""
    client = make_client(dsp.port, reconnect_delay=0.2)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await dsp.push(b"#09001=01000\r")
        await wait_until(lambda: _raw(client, "vu_program") == 1000)

        await dsp.drop()
        await wait_until(lambda: not client.connected)
        assert client.next_reconnect_at is not None
        # Stale values survive the gap
        assert _raw(client, "vu_program") == 1000

        await wait_until(lambda: dsp.connection_count == 2)
        await asyncio.sleep(0.1)
        assert dsp.connection_count == 2
        assert client.connect_attempts == 2

        await wait_until(lambda: len(dsp.commands(1)) >= 7)
        assert dsp.commands(1)[:3] == ["SQ 1", "EH 0", "PU 1"]
        assert client.connected
        assert client.next_reconnect_at is None
    finally:
        await client.stop()


async def test_reset_records_error_and_reconnects_once(dsp):
    """An error followed by a close yields one reconnect, not two."""
    client = make_client(dsp.port, reconnect_delay=0.3)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await wait_until(lambda: len(dsp.commands()) >= 7)

        await dsp.reset()
        await wait_until(lambda: not client.connected)
        assert client.snapshot().last_error

        await wait_until(lambda: dsp.connection_count == 2)
        await asyncio.sleep(0.15)
        assert dsp.connection_count == 2
        await wait_until(lambda: client.connected)
        assert client.snapshot().last_error is None
    finally:
        await client.stop()


async def test_connection_refused_retries_forever():
    port = _unused_port()
    client = make_client(port, reconnect_delay=0.02)
    await client.start()
    try:
        await wait_until(lambda: client.connect_attempts >= 3)
        snapshot = client.snapshot()
        assert snapshot.connected is False
        assert snapshot.last_error
        assert snapshot.last_connect_epoch is None
        assert client.running
    finally:
        await client.stop()


async def test_stop_cancels_pending_reconnect():
    port = _unused_port()
    client = make_client(port, reconnect_delay=0.2)
    await client.start()
    await wait_until(lambda: client.next_reconnect_at is not None)
    attempts = client.connect_attempts

    await client.stop()
    assert client.next_reconnect_at is None
    assert client.running is False
    assert client.state is ConnectionState.DISCONNECTED

    await asyncio.sleep(0.3)
    assert client.connect_attempts == attempts

    # Safe to call again
    await client.stop()


async def test_stop_then_start_has_no_crosstalk(dsp):
    """Data written to the pre-stop socket never reaches the value map."""
    client = make_client(dsp.port)
    await client.start()
    await wait_until(lambda: client.connected)
    await dsp.push(b"#09001=00001\r")
    await wait_until(lambda: _raw(client, "vu_program") == 1)

    await client.stop()
    assert client.snapshot().connected is False
    try:
        await dsp.push(b"#09001=11111\r", index=0)
    except ConnectionError:
        pass
    await asyncio.sleep(0.05)
    assert _raw(client, "vu_program") == 1

    await client.start()
    try:
        await wait_until(lambda: dsp.connection_count == 2)
        await wait_until(lambda: client.connected)
        try:
            await dsp.push(b"#09001=11111\r", index=0)
        except ConnectionError:
            pass
        await dsp.push(b"#09001=22222\r", index=1)
        await wait_until(lambda: _raw(client, "vu_program") == 22222)
        await asyncio.sleep(0.05)
        assert _raw(client, "vu_program") == 22222
    finally:
        await client.stop()


async def test_start_is_idempotent(dsp):
    client = make_client(dsp.port)
    await client.start()
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await asyncio.sleep(0.05)
        assert dsp.connection_count == 1
    finally:
        await client.stop()


async def test_empty_meter_list_never_connects(dsp):
    client = make_client(dsp.port, meters=[])
    await client.start()
    await asyncio.sleep(0.05)

    snapshot = client.snapshot()
    assert snapshot.connected is False
    assert snapshot.meters == []
    assert client.running is False
    assert client.connect_attempts == 0
    assert dsp.connection_count == 0
    await client.stop()


async def test_snapshot_is_a_copy(dsp):
    client = make_client(dsp.port)
    await client.start()
    try:
        await wait_until(lambda: client.connected)
        before = client.snapshot()
        await dsp.push(b"#09001=00500\r")
        await wait_until(lambda: _raw(client, "vu_program") == 500)
        assert before.meters[0].raw is None
        with pytest.raises(Exception):
            before.meters[0].raw = 1
    finally:
        await client.stop()


async def test_duplicate_controller_last_definition_wins(caplog, dsp):
    meters = [
        MeterDefinition(id="first", label="First", controller=9001),
        MeterDefinition(id="second", label="Second", controller=9001),
    ]
    with caplog.at_level(logging.WARNING):
        client = make_client(dsp.port, meters=meters)
    assert "mapped to both first and second" in caplog.text

    await client.start()
    try:
        await wait_until(lambda: client.connected)
        await dsp.push(b"#09001=00042\r")
        await wait_until(lambda: _raw(client, "second") == 42)
        assert _raw(client, "first") is None
    finally:
        await client.stop()
