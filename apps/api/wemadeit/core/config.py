from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "WeMadeIt API"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./wemadeit.sqlite3"
    auto_create_schema: bool = True
    seed_on_startup: bool = True
    admin_email: str = "admin@wemadeit.local"
    admin_password: str = "admin"
    admin_name: str = "Admin"
    session_ttl_hours: int = 168
    ui_settings_path: str = "./wemadeit-settings.json"
    rate_limit_disabled: bool = False
    rate_limit_crm_mutations_per_minute: int = 60
    metrics_enabled: bool = False
    otel_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
