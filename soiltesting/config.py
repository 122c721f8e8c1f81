from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Asia/Colombo", alias="TIMEZONE")

    postgres_db: str = Field(default="soiltesting", alias="POSTGRES_DB")
    postgres_user: str = Field(default="soiltesting", alias="POSTGRES_USER")
    postgres_password: str = Field(default="soiltesting", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    database_url: str = Field(default="", alias="DATABASE_URL")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    app_url: str = Field(default="http://localhost:3000", alias="APP_URL")
    frontend_url: str = Field(default="http://localhost:3001", alias="FRONTEND_URL")
    qr_render_url: str = Field(
        default="https://api.qrserver.com/v1/create-qr-code/", alias="QR_RENDER_URL"
    )

    sms_enabled: bool = Field(default=True, alias="SMS_ENABLED")
    sms_api_url: str = Field(default="https://app.notify.lk/api/v1/send", alias="SMS_API_URL")
    notify_lk_user_id: str = Field(default="", alias="NOTIFY_LK_USER_ID")
    notify_lk_api_key: str = Field(default="", alias="NOTIFY_LK_API_KEY")
    notify_lk_sender_id: str = Field(default="", alias="NOTIFY_LK_SENDER_ID")

    # Refuse approvals whose interval has no matching time slot
    require_time_slot: bool = Field(default=False, alias="REQUIRE_TIME_SLOT")

    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")
    reminder_hour: int = Field(default=18, alias="REMINDER_HOUR")

    class Config:
        populate_by_name = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
