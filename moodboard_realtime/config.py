"""Configuration management using pydantic-settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Browser clients (Vite dev server, CRA dev server)
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # WebSocket settings
    ws_max_message_size: int = 65536  # 64KB max inbound text frame (UTF-8 bytes)
    ws_outbox_size: int = 1000  # Pending outbound events per session

    # Flip a session's reported presence to offline when it leaves or its socket drops
    presence_offline_on_disconnect: bool = True

    # Redis settings (cross-worker broadcast relay, off when unset)
    redis_url: Optional[str] = None
    redis_max_connections: int = 50
    redis_socket_timeout: float = 5.0
    redis_retry_on_timeout: bool = True
    redis_required: bool = False  # Set True for multi-worker deployment


# Global settings instance
settings = Settings()
