import logging
import sys
import threading
from typing import BinaryIO, Optional

from shared.config import CHAT_LOGGER_NAME, chat_config


def trim_line_ending(raw: bytes) -> bytes:
    """Drop one trailing newline, then one trailing carriage return."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw


def read_line(
    stream: BinaryIO, limit: int = chat_config.max_line_bytes
) -> Optional[bytes]:
    """
    Blocks until one line is read from `stream`.

    At most `limit` bytes are consumed; the rest of a longer line stays in the
    stream for the next call. Returns None at end of input.
    """
    raw = stream.readline(limit)
    if not raw:
        return None
    return trim_line_ending(raw)


class LineInputSource:
    """
    One-shot keyboard reader running on its own thread.

    The thread publishes the line into the session context and sets its
    `input_ready` event, in that order, then exits. A new source is needed for
    every line.
    """

    def __init__(self, context, stream: Optional[BinaryIO] = None):
        self.logger = logging.getLogger(CHAT_LOGGER_NAME)
        self.context = context
        self.stream: BinaryIO = stream if stream is not None else sys.stdin.buffer
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("LineInputSource can only be started once")

        # Daemon so an unfinished read never holds the process open at exit.
        self._thread = threading.Thread(
            target=self._read, name="line-input", daemon=True
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _read(self) -> None:
        try:
            line = read_line(self.stream, self.context.input_capacity - 1)
        except (OSError, ValueError) as e:
            self.logger.error(f"Reading local input failed: {e}")
            line = None

        if line is None:
            self.logger.info("Local input reached end of file")
            self.context.input_closed = True
        else:
            self.logger.debug(f"Read {len(line)} bytes of local input")
            self.context.input_line = line

        self.context.input_ready.set()
