from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Entity store
    store_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite:///./schoolflow.db"

    # Notifications
    notification_sink: Literal["inbox", "http", "none"] = "inbox"
    notification_webhook_url: str | None = None
    notification_timeout_s: float = 2.0

    # Revenue (payments service)
    payments_base_url: str | None = None
    revenue_timeout_s: float = 5.0
    static_revenue: dict[str, float] = {}

    class Config:
        env_file = ".env"
        env_prefix = "SCHOOLFLOW_"


settings = Settings()
