"""
MODULE OVERVIEW:
Application-wide configuration for smallbot using Pydantic Settings.

WHAT IS HAPPENING HERE:
Everything a bot needs to reach its homeserver (URL, token, sync timeout, where
the sync cursor lives) is declared once here and can be overridden from the
environment or a `.env` file. Values passed explicitly to `SmallBot` always win
over these defaults.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Homeserver
    MATRIX_HOMESERVER_URL: str = "https://matrix.org"
    MATRIX_ACCESS_TOKEN: str = ""
    MATRIX_USER_ID: str | None = None

    # Long Polling (/sync), server-side wait in milliseconds
    MATRIX_SYNC_TIMEOUT_MS: int = 10000

    # Cursor persistence
    SMALLBOT_STORE_PATH: str = "small.store"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        # Keys meant for other tools in a shared .env are skipped
        extra = 'ignore'

settings = Settings()
