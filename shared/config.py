from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatConfig(BaseSettings):
    listen_host: str = "0.0.0.0"
    buffer_size: int = 300
    poll_timeout_us: int = 500
    quit_keyword: str = "QUIT"
    quit_locally: bool = False
    log_level: str = "INFO"
    logger_name: str = "chat_session"
    log_dir: str = "logs"

    model_config = SettingsConfigDict(
        env_prefix="CHAT_", env_file=".env", extra="ignore"
    )

    @property
    def max_line_bytes(self) -> int:
        # One byte of the buffer is kept for the terminator, like fgets.
        return self.buffer_size - 1


chat_config = ChatConfig()

CHAT_LOGGER_NAME = chat_config.logger_name
