from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./credit_gate.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    ADMIN_BOOTSTRAP_SECRET: str | None = None

    COST_PER_USE: int = 1
    SEED_CREDITS: int = 1000
    HISTORY_LIMIT: int = 50

    LEDGER_MAX_ATTEMPTS: int = 5
    LEDGER_RETRY_BACKOFF: float = 0.05

    RATE_LIMIT_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
