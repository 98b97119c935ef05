from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(Enum):
    SERVER = "server"
    CLIENT = "client"


class SessionState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"


class TerminationReason(Enum):
    PEER_QUIT = "peer_quit"
    PEER_RESET = "peer_reset"
    IO_ERROR = "io_error"
    LOCAL_QUIT = "local_quit"
    INPUT_CLOSED = "input_closed"


class PortNumber(BaseModel):
    # 65535 is excluded on purpose; both ends agree on 1-65534.
    value: int = Field(gt=0, lt=65535)

    @field_validator("value", mode="before")
    @classmethod
    def decimal_text(cls, value):
        if isinstance(value, str):
            value = value.strip()
            # Plain decimal digits only; int parsing alone also takes "8_080".
            if not (value.isascii() and value.isdigit()):
                raise ValueError(f"{value!r} is not a decimal port number")
        return value


class IPv4Address(BaseModel):
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def first_word(cls, value):
        if isinstance(value, str):
            words = value.split()
            return words[0] if words else ""
        return value

    @field_validator("value")
    @classmethod
    def dotted_quad(cls, value: str) -> str:
        octets = value.split(".")
        if len(octets) != 4:
            raise ValueError("an IPv4 address has exactly four octets")

        for octet in octets:
            if not octet:
                raise ValueError("empty octet")
            if not (octet.isascii() and octet.isdigit()):
                raise ValueError(f"octet {octet!r} is not a decimal number")
            if int(octet) > 255:
                raise ValueError(f"octet {octet} is out of range")

        return value

    def __str__(self):
        return self.value
