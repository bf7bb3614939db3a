import os
from dataclasses import dataclass, field
from typing import List


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = field(
        default_factory=lambda: os.getenv("PROJECT_NAME", "Social Events API")
    )
    api_version: str = field(default_factory=lambda: os.getenv("API_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # DynamoDB
    dynamodb_endpoint_url: str | None = field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL") or None
    )
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )
    events_table_name: str = field(
        default_factory=lambda: os.getenv("EVENTS_TABLE_NAME", "SocialEvents")
    )

    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", "*"))

    # Two revisions of the API disagreed on this; it is on unless disabled.
    require_future_event_date: bool = field(
        default_factory=lambda: _env_flag("REQUIRE_FUTURE_EVENT_DATE", "true")
    )

    # Identity resolution: "development" accepts any bearer token,
    # "static" looks tokens up in AUTH_TOKENS_FILE.
    auth_mode: str = field(default_factory=lambda: os.getenv("AUTH_MODE", "development"))
    auth_tokens_file: str | None = field(
        default_factory=lambda: os.getenv("AUTH_TOKENS_FILE") or None
    )
    dev_user_uid: str = field(default_factory=lambda: os.getenv("DEV_USER_UID", "test-uid"))
    dev_user_email: str = field(
        default_factory=lambda: os.getenv("DEV_USER_EMAIL", "test@example.com")
    )
    dev_user_name: str = field(default_factory=lambda: os.getenv("DEV_USER_NAME", "Test User"))
    dev_user_picture: str = field(default_factory=lambda: os.getenv("DEV_USER_PICTURE", ""))


settings = Settings()
