"""
icebreaker/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes Cosmos DB endpoint, database and container names
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


# Cosmos DB will not provision less than this for a database or container
MINIMUM_THROUGHPUT = 400


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Cosmos DB
    COSMOS_DB_ENDPOINT_URL: str = Field(
        default="https://localhost:8081/",
        description="Cosmos DB account endpoint"
    )
    COSMOS_DB_KEY: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Cosmos DB account key (served through the secrets provider)"
    )
    COSMOS_DB_DATABASE_NAME: str = Field(
        default="icebreaker",
        description="Cosmos DB database name"
    )
    COSMOS_COLLECTION_PAIRS: str = Field(
        default="pairs",
        description="Container holding the pairing history"
    )
    COSMOS_COLLECTION_TEAMS: str = Field(
        default="teams",
        description="Container holding installed teams"
    )
    COSMOS_COLLECTION_USERS: str = Field(
        default="users",
        description="Container holding user opt-in and profile state"
    )
    COSMOS_DEFAULT_THROUGHPUT: int = Field(
        default=MINIMUM_THROUGHPUT,
        description="RU/s requested for the database, or per container when shared offers are disabled"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @validator("COSMOS_DB_KEY")
    def validate_cosmos_key(cls, v, values):
        """Ensure the account key is set in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("COSMOS_DB_KEY is required in production environment")
        return v

    @validator("COSMOS_DEFAULT_THROUGHPUT")
    def validate_throughput(cls, v):
        if v < MINIMUM_THROUGHPUT:
            raise ValueError(f"COSMOS_DEFAULT_THROUGHPUT must be at least {MINIMUM_THROUGHPUT}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def validate_settings(config: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    config = config or settings
    errors = []

    if not config.COSMOS_DB_ENDPOINT_URL:
        errors.append("COSMOS_DB_ENDPOINT_URL is required")

    if not config.COSMOS_DB_DATABASE_NAME:
        errors.append("COSMOS_DB_DATABASE_NAME is required")

    container_names = [
        config.COSMOS_COLLECTION_PAIRS,
        config.COSMOS_COLLECTION_TEAMS,
        config.COSMOS_COLLECTION_USERS,
    ]
    if not all(container_names):
        errors.append("COSMOS_COLLECTION_PAIRS, COSMOS_COLLECTION_TEAMS and COSMOS_COLLECTION_USERS are required")
    elif len(set(container_names)) != len(container_names):
        errors.append("Pairs, teams and users containers must have distinct names")

    # Production-specific validations
    if config.is_production and not config.COSMOS_DB_KEY:
        errors.append("COSMOS_DB_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
