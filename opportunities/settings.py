"""Configuration models for the opportunities scraper."""

from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    Field,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(RuntimeError):
    """Raised when required settings are missing or invalid."""


class Settings(BaseSettings):
    """Environment-driven settings for one scraper deployment."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    fb_email: str = Field(..., alias="FB_EMAIL", description="อีเมลสำหรับเข้าสู่ระบบ Facebook")
    fb_password: SecretStr = Field(..., alias="FB_PASSWORD", description="รหัสผ่าน Facebook")
    spreadsheet_id: str = Field(..., alias="SPREADSHEET_ID", description="Google Sheets spreadsheet ID")
    google_credentials: SecretStr = Field(
        ...,
        alias="GOOGLE_CREDENTIALS",
        description="Service account JSON ที่เข้ารหัสแบบ base64",
    )
    cdp_endpoint: str = Field("ws://localhost:9222", alias="CDP_ENDPOINT", description="CDP endpoint ของเบราว์เซอร์")

    sheets_api_base: str = Field(
        "https://sheets.googleapis.com/v4/spreadsheets",
        alias="SHEETS_API_BASE",
        description="Google Sheets values API base URL",
    )
    sheets_timeout_seconds: PositiveInt = Field(30, alias="SHEETS_TIMEOUT_SECONDS", description="HTTP timeout (วินาที)")
    sources_tab: str = Field("Sources", alias="SOURCES_TAB", description="ชื่อแท็บรายการแหล่งข้อมูล")
    items_tab: str = Field("Items", alias="ITEMS_TAB", description="ชื่อแท็บเก็บรายการที่ scrape ได้")
    logs_tab: str = Field("Logs", alias="LOGS_TAB", description="ชื่อแท็บบันทึก log")

    scrape_max_posts: PositiveInt = Field(10, alias="SCRAPE_MAX_POSTS", description="จำนวนโพสต์สูงสุดต่อเพจ")
    scrape_scroll_count: int = Field(3, ge=0, alias="SCRAPE_SCROLL_COUNT", description="จำนวนครั้งที่ scroll")
    scrape_delay_min_ms: int = Field(2000, ge=0, alias="SCRAPE_DELAY_MIN_MS", description="หน่วงเวลาขั้นต่ำ (ms)")
    scrape_delay_max_ms: int = Field(5000, ge=0, alias="SCRAPE_DELAY_MAX_MS", description="หน่วงเวลาสูงสุด (ms)")
    scrape_timeout_ms: PositiveInt = Field(30000, alias="SCRAPE_TIMEOUT_MS", description="page load timeout (ms)")

    timezone: str = Field("Asia/Bangkok", alias="TIMEZONE", description="Timezone ของ timestamp ที่บันทึก")
    run_actor: str = Field("github-actions", alias="RUN_ACTOR", description="ชื่อผู้เขียน log ในแท็บ Logs")
    log_level: str = Field("INFO", alias="LOG_LEVEL", description="ระดับ log")
    log_json: bool = Field(False, alias="LOG_JSON", description="แสดง log เป็น JSON หรือไม่")

    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL", description="Celery broker/backend DSN")
    scrape_interval_minutes: PositiveInt = Field(360, alias="SCRAPE_INTERVAL_MINUTES", description="รอบการ scrape (นาที)")
    celery_task_soft_time_limit: PositiveInt = Field(
        1800,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery soft time limit (วินาที)",
    )

    @field_validator("fb_email", "spreadsheet_id")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("ค่านี้ต้องไม่เป็นค่าว่าง")
        return stripped

    @field_validator("fb_password", "google_credentials")
    @classmethod
    def _non_empty_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("ค่านี้ต้องไม่เป็นค่าว่าง")
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"TIMEZONE ไม่ถูกต้อง: {value}") from exc
        return value

    @model_validator(mode="after")
    def _validate_delay_range(self) -> "Settings":
        if self.scrape_delay_min_ms > self.scrape_delay_max_ms:
            raise ValueError("SCRAPE_DELAY_MIN_MS ต้องไม่มากกว่า SCRAPE_DELAY_MAX_MS")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    """Return Settings built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"ตรวจสอบ environment variables ไม่ผ่าน: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings cache (for tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
