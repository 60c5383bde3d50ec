from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:5000"

    SOCKETIO_PATH: str = "socket.io"
    SOCKET_TRANSPORTS: list[str] = ["websocket"]

    RECONNECT_DELAY_MIN: float = 1.0
    RECONNECT_DELAY_MAX: float = 5.0
    RECONNECT_JITTER: float = 0.5
    RECONNECT_MAX_ATTEMPTS: int = 15  # 0 = retry forever

    JOIN_ACK_TIMEOUT: float = 10.0
    SEND_ACK_TIMEOUT: float = 10.0
    MARK_READ_ACK_TIMEOUT: float = 5.0

    HTTP_TIMEOUT: float = 30.0

    LOG_LEVEL: str = "INFO"

    # Used by `python -m booking_sync` only.
    SESSION_TOKEN: str = ""
    BOOKING_ID: str = ""

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
