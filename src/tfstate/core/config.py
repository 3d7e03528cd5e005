"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreConfig(BaseSettings):
    """Which persistence backend serves the state store."""

    model_config = {"env_prefix": "TFSTATE_STORE_"}

    backend: Literal["sql", "dynamodb", "redis", "memory"] = "sql"


class SQLConfig(BaseSettings):
    """SQLAlchemy state database configuration."""

    model_config = {"env_prefix": "TFSTATE_SQL_"}

    url: str = "sqlite:///tfstate.db"
    echo: bool = False
    busy_timeout: float = 30.0  # seconds a SQLite writer waits for the file lock


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "TFSTATE_DYNAMO_"}

    table_name: str = "tfstate-states"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    max_attempts: int = 3  # botocore attempts per call, first try included
    connect_timeout: float = 5.0


class RedisConfig(BaseSettings):
    """Redis state store configuration."""

    model_config = {"env_prefix": "TFSTATE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "tfstate:"
    max_retries: int = 50  # WATCH conflicts tolerated per operation


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "TFSTATE_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    host: str = "0.0.0.0"
    port: int = 8080

    store: StoreConfig = Field(default_factory=StoreConfig)
    sql: SQLConfig = Field(default_factory=SQLConfig)
    dynamodb: DynamoDBConfig = Field(default_factory=DynamoDBConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
