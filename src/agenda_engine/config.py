from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = "UTC"
    sqlite_path: str = "data/agenda.db"
    log_path: str = "logs/agenda.log"
    log_level: str = "INFO"
    log_rotation: str = "10 MB"
    log_retention: str | None = "30 days"
    scheduler_enabled: bool = True
    expiry_interval_sec: int = 300
    agenda_plan_interval_sec: int = 3600
    alarm_plan_interval_sec: int = 600
    run_migrations_on_start: bool = True


settings = Settings()
