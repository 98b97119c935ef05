import logging
from typing import Optional

from pydantic import ValidationError

from shared.config import CHAT_LOGGER_NAME
from shared.models import IPv4Address, PortNumber, Role

from .console import ChatConsole

ROLE_CHOICES = {"1": Role.SERVER, "2": Role.CLIENT}
EXIT_CHOICE = "3"

logger = logging.getLogger(CHAT_LOGGER_NAME)


def prompt_role(console: ChatConsole) -> Optional[Role]:
    """Asks for a role until one is picked. None means the user chose to exit."""
    while True:
        answer = console.ask(
            "Press 1 to run chat server, 2 to run chat client or 3 to exit, "
            "then press enter:"
        ).strip()

        if answer == EXIT_CHOICE:
            return None
        if answer in ROLE_CHOICES:
            return ROLE_CHOICES[answer]

        logger.debug(f"Invalid role choice: {answer!r}")
        console.error("You have provided invalid input... try again!")


def prompt_port(console: ChatConsole, role: Role) -> int:
    if role is Role.SERVER:
        question = (
            "Type the port number (1-65534) you want your server to listen on "
            "and press enter:"
        )
    else:
        question = (
            "Type the port number (1-65534) you want to connect to on the server "
            "and press enter:"
        )

    while True:
        answer = console.ask(question)
        try:
            return PortNumber(value=answer).value
        except ValidationError as e:
            logger.debug(f"Invalid port {answer!r}: {e.errors()[0]['msg']}")
            console.error("Invalid Input. Try again.")


def prompt_ipv4(console: ChatConsole) -> str:
    while True:
        answer = console.ask("What's the IP address you'd like to connect to?")
        try:
            return str(IPv4Address(value=answer))
        except ValidationError as e:
            logger.debug(f"Invalid IPv4 address {answer!r}: {e.errors()[0]['msg']}")
            console.error("Invalid Input IP address. Try again.")
