from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    SQLITE_FILE: str = "storage/splitlog.sqlite"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    UNSUBSCRIBE_TOKEN_EXPIRE_DAYS: int = 365

    DEFAULT_CURRENCY: str = "USD"
    APP_URL: str = "http://localhost:8080"

    MAIL_API_URL: str | None = None
    MAIL_API_KEY: str | None = None
    MAIL_FROM: str = "Splitlog <no-reply@splitlog.local>"
    MAIL_TIMEOUT: int = 10


settings = Settings()
