import logging
import sys
from enum import Enum
from typing import BinaryIO, Optional, TextIO

from blessed import Terminal
from pydantic import BaseModel

from shared.config import CHAT_LOGGER_NAME

from .line_input import read_line


class Color(Enum):
    RED = (255, 0, 0)
    GREEN = (0, 200, 0)
    YELLOW = (230, 200, 0)


class ConsoleConfig(BaseModel):
    peer_label: str = "They said"
    peer_color: Color = Color.GREEN
    error_color: Color = Color.RED
    notice_color: Color = Color.YELLOW


class ChatConsole:
    """Everything the chat prints, and the reads behind prompts."""

    def __init__(
        self,
        term: Optional[Terminal] = None,
        stream: Optional[TextIO] = None,
        input_stream: Optional[BinaryIO] = None,
        config: ConsoleConfig = ConsoleConfig(),
    ):
        self.logger = logging.getLogger(CHAT_LOGGER_NAME)
        self.stream: TextIO = stream if stream is not None else sys.stdout
        self.input_stream: BinaryIO = (
            input_stream if input_stream is not None else sys.stdin.buffer
        )
        self.config = config
        self.term: Terminal = term if term is not None else Terminal()

    def _paint(self, color: Color, text: str) -> str:
        if not self.term.does_styling:
            return text
        return self.term.color_rgb(*color.value) + text + self.term.normal

    def _write(self, text: str, end: str = "\n") -> None:
        print(text, end=end, file=self.stream, flush=True)

    def ask(self, question: str) -> str:
        """Shows `question` and blocks for one line of input."""
        self._write(f"\n{question} ", end="")
        line = read_line(self.input_stream)
        if line is None:
            raise EOFError("input closed while waiting for an answer")
        return line.decode(errors="replace")

    def info(self, text: str) -> None:
        self._write(text)

    def notice(self, text: str) -> None:
        self._write(self._paint(self.config.notice_color, text))

    def error(self, text: str) -> None:
        self._write(self._paint(self.config.error_color, text))

    def show_peer_message(self, data: bytes) -> None:
        label = self._paint(self.config.peer_color, f"{self.config.peer_label}:")
        self._write(f"{label} {data.decode(errors='replace')}")

    def show_peer_quit(self) -> None:
        self.notice("Other party quit!")

    def show_peer_reset(self) -> None:
        self.error("Other party disconnected!")

    def show_socket_error(self, code: Optional[int]) -> None:
        self.error(f"Socket Error! Code: {code if code is not None else 'unknown'}")
