from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "KPR Origination API"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./kpr_engine.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Workflow deadlines
    default_workflow_timeout_hours: int = 72
    escalation_grace_hours: int = 0

    # Fractional digits kept on the monthly rate before the annuity formula
    monthly_rate_scale: int = 10

    # External collaborators; unset URLs fall back to the in-process implementations
    user_directory_url: Optional[str] = None
    property_catalog_url: Optional[str] = None
    notification_webhook_url: Optional[str] = None
    collaborator_timeout_seconds: float = 10.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
