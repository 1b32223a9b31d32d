from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./tutorsched.db", alias="DATABASE_URL")

    record_store_url: str = Field("http://localhost:8080/api", alias="RECORD_STORE_URL")
    record_store_token: Optional[str] = Field(None, alias="RECORD_STORE_TOKEN")
    conflict_check_url: str = Field("http://localhost:3001/api/conflicts/check", alias="CONFLICT_CHECK_URL")
    request_timeout_seconds: float = Field(10.0, alias="REQUEST_TIMEOUT_SECONDS")

    schedule_timezone: str = Field("Asia/Jerusalem", alias="SCHEDULE_TIMEZONE")
    require_student_for_booking: bool = Field(True, alias="REQUIRE_STUDENT_FOR_BOOKING")
    materialize_days_ahead: int = Field(14, alias="MATERIALIZE_DAYS_AHEAD")
    max_admin_sessions: int = Field(64, alias="MAX_ADMIN_SESSIONS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
