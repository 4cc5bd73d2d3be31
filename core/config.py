# WORKFLOW: Core configuration management for the Price Archive API.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings (POSTGRES_* variables or a full DATABASE_URL)
# - Archive upload defaults
# - API settings (prefix, host, port)
# - Logging configuration
#
# Loaded at startup and used by all services for consistent configuration.

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "validator"
    postgres_password: str = "val1dat0r"
    postgres_db: str = "project-sem-1"
    database_url: Optional[str] = None

    # Ingestion
    default_archive_type: str = "zip"
    upload_tmp_dir: Optional[str] = None

    # API
    api_v0_prefix: str = "/api/v0"
    project_name: str = "Price Archive API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def sqlalchemy_database_url(self) -> str:
        """Explicit DATABASE_URL wins over the POSTGRES_* parts."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
