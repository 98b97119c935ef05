import asyncio
import io
import queue

import pytest
from blessed import Terminal

from chat.console import ChatConsole


class GatedStream:
    """Binary stdin stand-in whose readline blocks until a line is fed."""

    def __init__(self):
        self._lines: queue.Queue[bytes] = queue.Queue()

    def feed(self, line: bytes) -> None:
        self._lines.put(line)

    def close(self) -> None:
        self._lines.put(b"")

    def readline(self, limit: int = -1) -> bytes:
        return self._lines.get(timeout=10)


class FakeConnection:
    """
    Scripted ConnectionHandle.

    Items in `incoming` are returned by `receive` in order (exceptions are
    raised). They only become readable once `release_after_sends` messages
    have been sent.
    """

    def __init__(
        self,
        incoming=(),
        release_after_sends: int = 0,
        send_error: OSError | None = None,
        poll_error: OSError | None = None,
    ):
        self.incoming = list(incoming)
        self.release_after_sends = release_after_sends
        self.send_error = send_error
        self.poll_error = poll_error
        self.sent: list[bytes] = []
        self.receive_calls = 0

    async def poll_readable(self, timeout_us: int) -> bool:
        await asyncio.sleep(0.001)
        if self.poll_error is not None:
            raise self.poll_error
        return len(self.sent) >= self.release_after_sends and bool(self.incoming)

    async def receive(self) -> bytes:
        self.receive_calls += 1
        item = self.incoming.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    def __str__(self):
        return "fake-peer"


def make_console(answers: bytes = b"") -> ChatConsole:
    return ChatConsole(
        term=Terminal(force_styling=None),
        stream=io.StringIO(),
        input_stream=io.BytesIO(answers),
    )


def console_output(console: ChatConsole) -> str:
    return console.stream.getvalue()


@pytest.fixture
def console():
    return make_console()


@pytest.fixture
def gated_stream():
    stream = GatedStream()
    yield stream
    # Release any reader thread still waiting.
    stream.close()
