"""Configuration management."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: SecretStr = SecretStr("password")
    neo4j_database: str | None = Field(default=None, description="Target database; the server default when unset")
    neo4j_max_connection_pool_size: int = Field(default=50, ge=1)
    neo4j_max_connection_lifetime: int = Field(default=3600, ge=1, description="Seconds before a pooled connection is recycled")  # noqa: E501

    # Logging
    log_level: str = "INFO"
    log_query_params: bool = Field(default=False, description="Include parameter values in query logs")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
    )


settings = Settings()
