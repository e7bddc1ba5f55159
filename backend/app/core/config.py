from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "TankPlanner API"
    api_prefix: str = "/api/v1"
    database_url: str = "sqlite:///./tankplanner.db"
    auto_create_tables: bool = False
    log_level: str = "INFO"

    jwt_secret_key: str = "change-me-in-env"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    password_hash_iterations: int = 120000

    redis_url: str = "redis://localhost:6379/0"
    lock_ttl_seconds: float = 30.0
    lock_retry_count: int = 5
    lock_retry_base_delay_seconds: float = 0.05
    lock_retry_max_delay_seconds: float = 1.0
    idempotency_ttl_seconds: float = 86400.0

    calendar_max_range_days: int = 366
    block_detail_reading_limit: int = 5

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
