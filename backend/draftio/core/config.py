from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import logging
import os

logger = logging.getLogger("draftio")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Application
    APP_NAME: str = "draftio-chat"
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = False
    TESTING: bool = False

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./draftio_chat.db"
    )

    # JWT
    JWT_SECRET: str = os.getenv("JWT_SECRET", "your-secret-key")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Relay (Socket.IO) client
    CHAT_WS_URL: str = os.getenv("CHAT_WS_URL", "http://localhost:5007")
    CHAT_API_URL: str = os.getenv("CHAT_API_URL", "http://localhost:5007")
    SOCKETIO_PATH: str = "socket.io"
    # Polling first, then upgrade. Never websocket-only.
    RELAY_TRANSPORTS: List[str] = ["polling", "websocket"]
    RELAY_RECONNECTION_DELAY: float = 1.0
    RELAY_RECONNECTION_ATTEMPTS: int = 10
    RELAY_CONNECT_TIMEOUT: float = 10.0

    # Client-side state
    TYPING_TIMEOUT: float = 3.0
    NOTIFICATION_PREVIEW_LENGTH: int = 80
    TOAST_DURATION: float = 5.0
    CLIENT_STATE_DIR: str = os.getenv(
        "CLIENT_STATE_DIR",
        os.path.join(os.path.expanduser("~"), ".draftio")
    )

    # REST
    MESSAGES_PAGE_SIZE: int = 50


settings = Settings()
