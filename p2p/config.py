from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    APP_NAME: str = "P2P Workflow"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000

    # "local" keeps entities in-process (optionally persisted to LOCAL_STORE_PATH),
    # "sql" uses the SQLAlchemy backend at DATABASE_URL.
    STORE_BACKEND: Literal["local", "sql"] = "local"
    LOCAL_STORE_PATH: Optional[str] = None
    STORE_RETRY_ATTEMPTS: int = 3

    DATABASE_URL: str = ""
    DATABASE_SYNC_URL: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_RECYCLE: int = 300

    JWT_SECRET_KEY: str = "change-me"
    JWT_PRIVATE_KEY_PATH: Optional[str] = None
    JWT_PUBLIC_KEY_PATH: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    DEFAULT_APPROVER_ID: str = "approver123"
    DEFAULT_APPROVER_NAME: str = "Jane Smith"
    DEFAULT_APPROVER_EMAIL: str = "jane.smith@example.com"
    APPROVAL_LIMIT_POLICY: Literal["advisory", "enforced"] = "advisory"

    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_SHIPPING_ADDRESS: str = "123 Warehouse St, Business Park"
    DEFAULT_BILLING_ADDRESS: str = "456 Finance Ave, Business District"

    NOTIFICATION_BACKEND: Literal["log", "email"] = "log"
    BREVO_API_KEY: Optional[str] = None
    EMAIL_FROM_ADDRESS: str = "noreply@p2p.example.com"
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def enforce_approval_limits(self) -> bool:
        return self.APPROVAL_LIMIT_POLICY == "enforced"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
