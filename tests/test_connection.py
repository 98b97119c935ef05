import asyncio
import errno
import gc
import socket

import pytest

from chat.connection import ConnectionHandle, connect, listen
from chat.errors import SetupFailure
from chat.session import ChatSession
from conftest import console_output
from shared.models import TerminationReason

LOOPBACK = "127.0.0.1"


async def open_pair() -> tuple[ConnectionHandle, ConnectionHandle]:
    """Returns (listening side, connecting side) over loopback."""
    bound: asyncio.Future = asyncio.get_running_loop().create_future()
    accept_task = asyncio.create_task(
        listen(0, on_listening=bound.set_result, host=LOOPBACK)
    )
    port = await asyncio.wait_for(bound, timeout=5)
    client = await connect(port, LOOPBACK)
    server = await asyncio.wait_for(accept_task, timeout=5)
    return server, client


async def wait_readable(handle: ConnectionHandle, attempts: int = 2000) -> bool:
    for _ in range(attempts):
        if await handle.poll_readable(500):
            return True
    return False


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((LOOPBACK, 0))
        return sock.getsockname()[1]


class TestConnectionHandle:
    @pytest.mark.asyncio
    async def test_bytes_arrive_unchanged(self):
        server, client = await open_pair()
        try:
            await client.send(b"hi")

            assert await wait_readable(server)
            assert await server.receive() == b"hi"
        finally:
            await client.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_poll_times_out_when_idle(self):
        server, client = await open_pair()
        try:
            assert await server.poll_readable(500) is False
            assert await server.poll_readable(500) is False

            await client.send(b"late")
            assert await wait_readable(server)
            assert await server.receive() == b"late"
        finally:
            await client.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_receive_is_bounded_by_limit(self):
        server, client = await open_pair()
        try:
            await client.send(b"x" * 500)

            received = b""
            while len(received) < 500:
                assert await wait_readable(server)
                chunk = await server.receive()
                assert 0 < len(chunk) <= 300
                received += chunk
            assert received == b"x" * 500
        finally:
            await client.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_close_by_peer_reads_as_empty(self):
        server, client = await open_pair()
        try:
            await client.close()

            assert await wait_readable(server)
            assert await server.receive() == b""
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_close_consumes_failed_outstanding_read(self, caplog):
        server, client = await open_pair()
        try:
            assert await server.poll_readable(500) is False

            server.reader.set_exception(ConnectionResetError("reset"))
            for _ in range(5):
                await asyncio.sleep(0)
        finally:
            await server.close()
            await client.close()

        gc.collect()
        assert "exception was never retrieved" not in caplog.text

    @pytest.mark.asyncio
    async def test_closed_handle_refuses_io(self):
        server, client = await open_pair()
        await client.close()
        await server.close()

        assert client.closed
        with pytest.raises(ConnectionAbortedError):
            await client.send(b"hi")
        with pytest.raises(ConnectionAbortedError):
            await client.poll_readable(500)

        # Closing twice is harmless.
        await client.close()


class TestSetup:
    @pytest.mark.asyncio
    async def test_connect_refused_is_setup_failure(self):
        with pytest.raises(SetupFailure) as excinfo:
            await connect(unused_port(), LOOPBACK)

        assert excinfo.value.code == errno.ECONNREFUSED

    @pytest.mark.asyncio
    async def test_listen_on_busy_port_is_setup_failure(self):
        busy = await asyncio.start_server(lambda r, w: None, LOOPBACK, 0)
        port = busy.sockets[0].getsockname()[1]
        try:
            with pytest.raises(SetupFailure) as excinfo:
                await listen(port, host=LOOPBACK)
            assert excinfo.value.code == errno.EADDRINUSE
        finally:
            busy.close()
            await busy.wait_closed()

    @pytest.mark.asyncio
    async def test_listener_stops_after_first_connection(self):
        server, client = await open_pair()
        port = server.writer.get_extra_info("sockname")[1]
        try:
            with pytest.raises(SetupFailure):
                await connect(port, LOOPBACK)
        finally:
            await client.close()
            await server.close()


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_message_then_close_reaches_peer_session(self, console, gated_stream):
        server, client = await open_pair()
        session = ChatSession(server, console, input_stream=gated_stream)
        try:
            await client.send(b"hi")
            await client.close()

            reason = await asyncio.wait_for(session.run(), timeout=5)
        finally:
            await server.close()

        output = console_output(console)
        assert "They said: hi\n" in output
        assert "Other party quit!" in output
        assert reason is TerminationReason.PEER_QUIT
        assert session.context.receive_buffer == b""

    @pytest.mark.asyncio
    async def test_typed_line_reaches_peer(self, console, gated_stream):
        server, client = await open_pair()
        session = ChatSession(client, console, input_stream=gated_stream)
        run_task = asyncio.create_task(session.run())
        try:
            gated_stream.feed(b"hello there\r\n")

            assert await wait_readable(server)
            assert await server.receive() == b"hello there"

            await server.close()
            reason = await asyncio.wait_for(run_task, timeout=5)
        finally:
            await client.close()

        assert reason is TerminationReason.PEER_QUIT
