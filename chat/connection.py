import asyncio
import logging
from typing import Callable, Optional

from shared.config import CHAT_LOGGER_NAME, chat_config

from .errors import SetupFailure


class ConnectionHandle:
    """
    An established chat connection.

    Readability is polled by keeping one read outstanding on the stream
    reader: `poll_readable` starts it (if needed) and waits a bounded time for
    it, `receive` hands over its result. Data is therefore never lost when a
    poll times out.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        receive_limit: int = chat_config.buffer_size,
        server: Optional[asyncio.Server] = None,
    ) -> None:
        self.logger = logging.getLogger(CHAT_LOGGER_NAME)
        self.reader = reader
        self.writer = writer
        self.receive_limit = receive_limit
        self.peername = writer.get_extra_info("peername")

        self._server = server
        self._pending_read: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def poll_readable(self, timeout_us: int) -> bool:
        """Returns True if `receive` will complete without waiting."""
        if self._closed:
            raise ConnectionAbortedError("connection is closed")

        if self._pending_read is None:
            self._pending_read = asyncio.ensure_future(
                self.reader.read(self.receive_limit)
            )

        done, _ = await asyncio.wait(
            {self._pending_read}, timeout=timeout_us / 1_000_000
        )
        return bool(done)

    async def receive(self) -> bytes:
        """
        Reads up to `receive_limit` bytes. An empty result means the peer
        closed the connection.
        """
        if self._pending_read is None:
            self._pending_read = asyncio.ensure_future(
                self.reader.read(self.receive_limit)
            )

        pending, self._pending_read = self._pending_read, None
        return await pending

    async def send(self, data: bytes) -> None:
        if self._closed:
            raise ConnectionAbortedError("connection is closed")

        self.writer.write(data)
        await self.writer.drain()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        pending, self._pending_read = self._pending_read, None
        if pending is not None:
            if not pending.done():
                pending.cancel()
            elif not pending.cancelled() and pending.exception() is not None:
                # Retrieved here so asyncio does not report it on collection.
                self.logger.debug(
                    f"Discarding failed read from {self}: {pending.exception()!r}"
                )

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError as e:
            self.logger.warning(f"Error closing connection to {self}: {e}")

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        self.logger.info(f"Closed connection to {self}")

    def __str__(self) -> str:
        if self.peername:
            return f"{self.peername[0]}:{self.peername[1]}"
        return "<unconnected>"


async def connect(
    port: int, ipv4_address: str, receive_limit: int = chat_config.buffer_size
) -> ConnectionHandle:
    """Opens a connection to a chat server at `ipv4_address`:`port`."""
    logger = logging.getLogger(CHAT_LOGGER_NAME)
    logger.info(f"Connecting to {ipv4_address}:{port}")

    try:
        reader, writer = await asyncio.open_connection(ipv4_address, port)
    except OSError as e:
        logger.error(f"Failed to connect to {ipv4_address}:{port}: {e}")
        raise SetupFailure.from_os_error("connect", e) from e

    handle = ConnectionHandle(reader, writer, receive_limit)
    logger.info(f"Connected to {handle}")
    return handle


async def listen(
    port: int,
    on_listening: Optional[Callable[[int], None]] = None,
    host: str = chat_config.listen_host,
    receive_limit: int = chat_config.buffer_size,
) -> ConnectionHandle:
    """
    Listens on `port` and returns the first connection accepted.

    `on_listening` is called with the bound port once the socket is
    listening. Later connections are refused; the listener is closed together
    with the returned handle.
    """
    logger = logging.getLogger(CHAT_LOGGER_NAME)
    loop = asyncio.get_running_loop()
    accepted: asyncio.Future = loop.create_future()

    def handle_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        if accepted.done():
            logger.warning(
                f"Rejecting extra connection from {writer.get_extra_info('peername')}"
            )
            writer.close()
            return
        accepted.set_result((reader, writer))

    try:
        server = await asyncio.start_server(handle_client, host, port)
    except OSError as e:
        logger.error(f"Failed to listen on {host}:{port}: {e}")
        raise SetupFailure.from_os_error("bind", e) from e

    bound_port = server.sockets[0].getsockname()[1]
    logger.info(f"Listening on {host}:{bound_port}")
    if on_listening is not None:
        on_listening(bound_port)

    try:
        reader, writer = await accepted
    except asyncio.CancelledError:
        server.close()
        await server.wait_closed()
        raise

    # Stop accepting, but keep the server object until the chat ends:
    # wait_closed() also waits for the accepted connection.
    server.close()

    handle = ConnectionHandle(reader, writer, receive_limit, server=server)
    logger.info(f"Accepted connection from {handle}")
    return handle
