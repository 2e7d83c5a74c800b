from typing import List, Union
from pydantic import AnyHttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Prescription Lifecycle Service"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Record store
    RECORD_STORE_BACKEND: str = "sql"
    DATABASE_URL: str = "sqlite:///./prescriptions.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "rxcore:"
    REDIS_LOCK_TIMEOUT: int = 10
    PRESCRIPTIONS_COLLECTION: str = "prescriptions"
    ALERTS_COLLECTION: str = "prescription_alerts"

    @field_validator("RECORD_STORE_BACKEND")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        return v.strip().lower()

    # Prescription workflow windows (days)
    PRESCRIPTION_VALIDITY_DAYS: int = 7
    OVERDUE_PICKUP_DAYS: int = 3
    OVERDUE_ESCALATION_DAYS: int = 7

    # Limits enforced by the input validator
    PRESCRIPTION_MAX_AGE_DAYS: int = 30
    CONTROLLED_SUPPLY_LIMIT: int = 90

    PRESCRIPTION_NUMBER_MAX_ATTEMPTS: int = 20

    # Scheduler
    MONITORING_INTERVAL_MINUTES: int = 60

    @model_validator(mode='after')
    def check_windows(self) -> 'Settings':
        if self.PRESCRIPTION_VALIDITY_DAYS <= 0:
            raise ValueError("PRESCRIPTION_VALIDITY_DAYS must be positive")
        if self.OVERDUE_PICKUP_DAYS < 0:
            raise ValueError("OVERDUE_PICKUP_DAYS cannot be negative")
        if self.OVERDUE_ESCALATION_DAYS < self.OVERDUE_PICKUP_DAYS:
            # escalation never precedes the overdue threshold
            self.OVERDUE_ESCALATION_DAYS = self.OVERDUE_PICKUP_DAYS
        return self

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra='ignore')

settings = Settings()
