from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Showroom Storefront API"
    BRAND_NAME: str = "WUXI BYD"
    DEALERSHIP_NAME: str = "Wuxi BYD Vehicles Co., Ltd."
    DOMAIN: str = "api.yourdomain.com"
    SECRET_KEY: str = "supersecretkey"
    DATABASE_URL: str = "sqlite+aiosqlite:///./showroom.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SENTRY_DSN: str = "" # Optional
    TIMEZONE: str = "Asia/Shanghai"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "" # Empty = stderr only

    # Email function (hosted endpoint that actually sends the mail)
    EMAIL_FUNCTION_URL: str = "" # Empty = log only, nothing is sent
    EMAIL_FUNCTION_KEY: str = ""
    EMAIL_TIMEOUT: float = 10.0
    AGENT_EMAIL: str = "agent@example.com" # Operations mailbox for agent-pay requests

    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "password123"

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"

    STORAGE_UPLOAD_URL: str = "" # Empty = preview URLs only
    STORAGE_TIMEOUT: float = 30.0

    RAFFLE_PREFIX: str = "BYD2025"
    INSTALLMENT_RATE: float = 4.5 # Annual, percent

    SESSION_COOKIE: str = "showroom_session"
    SESSION_MAX_AGE: int = 86400 * 7 # 7 days

    class Config:
        env_file = ".env"

settings = Settings()
