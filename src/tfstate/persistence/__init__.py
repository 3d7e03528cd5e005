"""Pluggable state store backends behind the IStateStore protocol."""

from __future__ import annotations

from tfstate.core.config import AppSettings
from tfstate.core.protocols import IStateStore


def create_state_store(settings: AppSettings | None = None) -> IStateStore:
    """Create the state store selected by ``settings.store.backend``.

    Backends are imported lazily so a deployment only needs the driver it uses.
    """
    if settings is None:
        settings = AppSettings()

    backend = settings.store.backend
    if backend == "sql":
        from tfstate.persistence.sql_backend import SQLStateStore

        return SQLStateStore(
            url=settings.sql.url,
            echo=settings.sql.echo,
            busy_timeout=settings.sql.busy_timeout,
        )
    if backend == "dynamodb":
        from tfstate.persistence.dynamodb_backend import DynamoDBStateStore

        return DynamoDBStateStore(
            table_name=settings.dynamodb.table_name,
            region=settings.dynamodb.region,
            endpoint_url=settings.dynamodb.endpoint_url,
            max_attempts=settings.dynamodb.max_attempts,
            connect_timeout=settings.dynamodb.connect_timeout,
        )
    if backend == "redis":
        from tfstate.persistence.redis_backend import RedisStateStore

        return RedisStateStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
            max_retries=settings.redis.max_retries,
        )
    if backend == "memory":
        from tfstate.persistence.memory_backend import MemoryStateStore

        return MemoryStateStore()
    raise ValueError(f"Unknown state store backend: {backend!r}")
