"""Content Engine configuration, loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CONTENT_ENGINE_", "env_file": ".env"}

    # Drafting backend (seed value; the workspace can switch it at runtime)
    api_base_url: str = "https://content-engine-backend-v2.vercel.app/api"
    request_timeout: float = 120.0
    health_timeout: float = 10.0

    # Notifications
    error_message_limit: int = 200
    max_notifications: int = 50

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]


settings = Settings()
