from pydantic_settings import BaseSettings
from functools import lru_cache
import os
from pathlib import Path


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./campaign_hub.db"

    # App
    app_name: str = "Campaign Hub API"
    debug: bool = False
    log_level: str = "INFO"
    service_name: str = "campaign-hub"

    # Links handed back to campaign creators
    frontend_url: str = "http://localhost:5173"

    # Authentication (tokens are issued by the user service with the same secret)
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration: int = 7 * 24 * 3600

    # Listings
    most_visited_limit: int = 6

    # Slug assignment retries after a unique-constraint violation
    slug_max_attempts: int = 20

    # Circuit breaker
    db_failure_threshold: int = 5
    db_recovery_timeout: int = 30

    # Tracing
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://localhost:4318/v1/traces"

    class Config:
        # Look for .env.local file in the project root
        env_file = os.path.join(Path(__file__).parent.parent.parent, ".env.local")
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
