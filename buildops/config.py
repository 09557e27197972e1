from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://buildops:buildops_dev@db:5432/buildops"
    DATABASE_ECHO: bool = False

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Change orders
    BUDGET_ITEM_CATEGORY_PREFIX: str = "CO: "
    RECONCILE_INTERVAL_MINUTES: int = 60

    # App
    ALLOWED_ORIGINS: str = "*"
    APP_ENV: str = "development"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
