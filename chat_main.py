import asyncio
import logging

from chat.connection import ConnectionHandle, connect, listen
from chat.console import ChatConsole
from chat.errors import SetupFailure
from chat.prompts import prompt_ipv4, prompt_port, prompt_role
from chat.session import ChatSession
from shared.config import chat_config
from shared.log import setup_logging
from shared.models import Role


async def open_connection(role: Role, console: ChatConsole) -> ConnectionHandle:
    """Runs the prompts for `role` and establishes the connection."""
    if role is Role.SERVER:
        console.info("You have selected to run the chat server.")
        port = prompt_port(console, role)

        def announce(bound_port: int) -> None:
            console.info(
                f"Socket listening on port {bound_port}. "
                "Waiting on connection from client..."
            )

        connection = await listen(port, on_listening=announce)
        console.info("Accepted Connection!!")
        return connection

    console.info("You have selected to run the chat client.")
    port = prompt_port(console, role)
    console.info(f"You have entered port no: {port}")
    address = prompt_ipv4(console)
    console.info(f"You have entered IP Address: {address}")

    connection = await connect(port, address)
    console.info("Connection Success!!")
    return connection


async def run_role(role: Role, console: ChatConsole) -> ChatSession | None:
    """One connection and one chat. Returns the finished session, if any."""
    logger = logging.getLogger(chat_config.logger_name)

    try:
        connection = await open_connection(role, console)
    except SetupFailure as e:
        logger.error(f"Connection setup failed: {e}")
        console.error(f"Connection failed! :( {e}")
        if e.code is not None:
            console.error(f"Error code: {e.code}")
        return None

    session = ChatSession(connection, console)
    try:
        await session.run()
    finally:
        await connection.close()
    return session


def main():
    logger = logging.getLogger(chat_config.logger_name)
    console = ChatConsole()

    while True:
        role = prompt_role(console)
        if role is None:
            break

        logger.info(f"Starting chat as {role.value}")
        session = asyncio.run(run_role(role, console))

        if session is not None and session.input_pending():
            # The unfinished line belongs to a closed chat; it is read and dropped.
            console.info("Press Enter to return to the menu.")
            session.retire_input()

    console.info("Goodbye!")


def run():
    chat_logger = setup_logging(
        chat_config.logger_name,
        logger_level=getattr(logging, chat_config.log_level),
        log_dir=chat_config.log_dir,
    )
    chat_logger.info("Starting chat application")
    try:
        main()
    except (KeyboardInterrupt, EOFError):
        chat_logger.info("Chat interrupted by user. Shutting down cleanly.")
        print("\nDisconnected. Goodbye!")
    finally:
        logging.shutdown()


if __name__ == "__main__":
    run()
