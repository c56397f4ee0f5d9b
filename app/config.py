from typing import List
from pydantic import AnyHttpUrl, computed_field
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Gym Tracker"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    APP_ENV: str = "development"
    TRACKER_TIMEZONE: str = "UTC"

    # Validation
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    # Weekly summary regeneration
    SUMMARY_AUTO_ENABLED: bool = False
    SUMMARY_AUTO_HOUR_LOCAL: int = 3
    SUMMARY_AUTO_MINUTE_LOCAL: int = 0
    SUMMARY_AUTO_TZ: str | None = None

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "gym"
    POSTGRES_PASSWORD: str = "gym"
    POSTGRES_DB: str = "gym_tracker"
    DATABASE_URL: str | None = None

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(MultiHostUrl.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()
