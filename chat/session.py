import logging
import threading
from typing import BinaryIO, Optional

from shared.config import CHAT_LOGGER_NAME, ChatConfig, chat_config
from shared.models import SessionState, TerminationReason

from .connection import ConnectionHandle
from .console import ChatConsole
from .errors import classify_io_error
from .line_input import LineInputSource


class SessionContext:
    """
    State of one chat session.

    `input_ready` is the only field touched by two threads. The input thread
    writes `input_line` (or `input_closed`) and then sets the event; the
    session loop reads them only after seeing the event and joining the
    thread, and clears them before starting the next reader.
    """

    def __init__(
        self, connection: ConnectionHandle, config: ChatConfig = chat_config
    ):
        self.connection = connection
        self.input_capacity: int = config.buffer_size
        self.receive_capacity: int = config.buffer_size

        self.input_line: bytes = b""
        self.input_closed: bool = False
        self.input_ready = threading.Event()
        self.receive_buffer: bytes = b""

        self.state: SessionState = SessionState.RUNNING
        self.termination_reason: Optional[TerminationReason] = None

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING

    def terminate(self, reason: TerminationReason) -> None:
        if self.state is SessionState.TERMINATING:
            return
        self.state = SessionState.TERMINATING
        self.termination_reason = reason


class ChatSession:
    """Runs the chat over an established connection until either side ends it."""

    def __init__(
        self,
        connection: ConnectionHandle,
        console: ChatConsole,
        config: ChatConfig = chat_config,
        input_stream: Optional[BinaryIO] = None,
    ):
        self.logger = logging.getLogger(CHAT_LOGGER_NAME)
        self.console = console
        self.config = config
        self.input_stream = input_stream
        self.context = SessionContext(connection, config)
        self._input_source: Optional[LineInputSource] = None

    async def run(self) -> TerminationReason:
        if self.config.quit_locally:
            quit_hint = f"Type {self.config.quit_keyword} and press enter to quit."
        else:
            quit_hint = "Either side can end the chat by closing the program."
        self.console.info(
            f"Connected. Type your message and press enter to send it. {quit_hint}"
        )
        self.logger.info(f"Chat session started with {self.context.connection}")

        self._start_input_source()

        while self.context.running:
            if self.context.input_ready.is_set():
                await self._handle_local_input()

            if self.context.running:
                await self._poll_connection()

        self.logger.info(
            f"Chat session with {self.context.connection} ended: "
            f"{self.context.termination_reason.value}"
        )
        return self.context.termination_reason

    def input_pending(self) -> bool:
        """True while an input thread is still waiting for a line."""
        return self._input_source is not None and self._input_source.is_alive()

    def retire_input(self) -> None:
        """Blocks until the outstanding input thread, if any, has finished."""
        if self._input_source is not None:
            self._input_source.join()
            self._input_source = None

    def _start_input_source(self) -> None:
        self._input_source = LineInputSource(self.context, self.input_stream)
        self._input_source.start()

    async def _handle_local_input(self) -> None:
        # The event is only set as the thread's last step, so this is short.
        self._input_source.join()
        self._input_source = None

        line = self.context.input_line
        if self.context.input_closed:
            self.context.terminate(TerminationReason.INPUT_CLOSED)
        elif self.config.quit_locally and line == self.config.quit_keyword.encode():
            self.logger.info("Local user quit")
            self.context.terminate(TerminationReason.LOCAL_QUIT)
        elif line:
            await self._send(line)

        self.context.input_ready.clear()
        self.context.input_line = b""

        if self.context.running:
            self._start_input_source()

    async def _send(self, data: bytes) -> None:
        try:
            await self.context.connection.send(data)
            self.logger.debug(
                f"Sent {len(data)} bytes to {self.context.connection}"
            )
        except OSError as e:
            self._fail("send", e)

    async def _poll_connection(self) -> None:
        try:
            ready = await self.context.connection.poll_readable(
                self.config.poll_timeout_us
            )
        except OSError as e:
            self._fail("poll", e)
            return

        if not ready:
            return

        try:
            data = await self.context.connection.receive()
        except OSError as e:
            self._fail("receive", e)
            return

        if not data:
            self.logger.info(f"{self.context.connection} closed the connection")
            self.console.show_peer_quit()
            self.context.terminate(TerminationReason.PEER_QUIT)
            return

        self.context.receive_buffer = data[: self.context.receive_capacity]
        self.logger.debug(
            f"Received {len(data)} bytes from {self.context.connection}"
        )
        self.console.show_peer_message(self.context.receive_buffer)
        self.context.receive_buffer = b""

    def _fail(self, action: str, error: OSError) -> None:
        reason = classify_io_error(error)
        if reason is TerminationReason.PEER_RESET:
            self.logger.warning(f"Connection reset by peer during {action}: {error}")
            self.console.show_peer_reset()
        else:
            self.logger.error(f"Socket error during {action}: {error}")
            self.console.show_socket_error(error.errno)
        self.context.terminate(reason)
