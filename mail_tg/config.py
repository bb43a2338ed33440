from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    if Path('.env').exists():
        model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')
    else:
        model_config = SettingsConfigDict()

    bot_token: str

    # Target chat (numeric id or @channel username)
    chat_id: int | str
    # Forum topic inside the chat (optional)
    message_thread_id: int | None = None

    # Segment size limit, kept below Telegram's 4096 to absorb escaping
    max_message_length: int = 3500

    # Webhook listener for inbound raw emails
    backend_host: str = '0.0.0.0'
    backend_port: int = 8080
    webhook_path: str = '/email'
    webhook_secret: str | None = None

    # Logging level
    logging_level: Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'] = 'INFO'

    @field_validator('chat_id', mode='before')
    def parse_chat_id(cls, chat_id: int | str) -> int | str:
        if isinstance(chat_id, str):
            chat_id = chat_id.strip()
            if chat_id.lstrip('-').isdigit():
                return int(chat_id)
        return chat_id

    @field_validator('max_message_length')
    def validate_max_message_length(cls, length: int) -> int:
        if not 1 <= length <= 4096:
            raise ValueError(f'max_message_length must be within 1..4096, got {length}')
        return length

    @field_validator('webhook_path')
    def validate_webhook_path(cls, path: str) -> str:
        return path if path.startswith('/') else f'/{path}'


CONFIG = Config()
