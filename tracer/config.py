from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    debug: bool = False
    json_logs: bool = False

    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    redis_timeout_seconds: float = 2.0

    jwt_secret: str = "dev-secret-change-me-0123456789abcdef"
    jwt_issuer: str = "tracer-core"
    jwt_audience: str = "tracer-core"
    jwt_expires_minutes: int = 60

    # outbound notifications (fire-and-forget over redis pub/sub)
    notifications_enabled: bool = True
    notifications_channel: str = "tracer:notifications"

settings = Settings()
