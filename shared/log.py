import os
import logging
from datetime import datetime
from typing import Optional


def _log_file_path(
    logger_name: str, log_dir: str, log_file_name: Optional[str], timestamped: bool
) -> str:
    if log_file_name is None:
        log_file_name = f"{logger_name}.log"

    if not timestamped:
        return os.path.join(log_dir, log_file_name)

    base, ext = os.path.splitext(log_file_name)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return os.path.join(log_dir, f"{base}_{timestamp}{ext}")


def setup_logging(
    logger_name: str,
    logger_level: int = logging.DEBUG,
    file_handler_level: int = logging.DEBUG,
    console_handler_level: int = logging.ERROR,
    log_dir: str = "logs",
    log_file_name: Optional[str] = None,
    add_timestamp_to_log_file: bool = True,
    force_reconfig: bool = False,
) -> logging.Logger:
    """
    Configure the chat logger.

    Everything goes to a log file under `log_dir`. Only errors reach the
    console by default, since the console is shared with the chat itself and
    log lines would interleave with what the user is typing.

    Args:
        logger_name: Name of the logger, usually `chat_config.logger_name`.
        logger_level: Level of the logger itself.
        file_handler_level: Level for the log file.
        console_handler_level: Level for stderr.
        log_dir: Directory for log files, created if missing.
        log_file_name: File name; defaults to `<logger_name>.log`.
        add_timestamp_to_log_file: Append the start time to the file name so
            each run gets its own file.
        force_reconfig: Drop and close existing handlers first.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logger_level)

    if force_reconfig:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()

    if logger.handlers:
        return logger

    os.makedirs(log_dir, exist_ok=True)
    log_file_path = _log_file_path(
        logger_name, log_dir, log_file_name, add_timestamp_to_log_file
    )

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(threadName)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
    file_handler.setLevel(file_handler_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_handler_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
