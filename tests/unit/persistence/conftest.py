"""Store fixtures: one per backend, each on isolated storage."""

from __future__ import annotations

from unittest.mock import patch

import boto3
import fakeredis
import pytest
from moto import mock_aws

from tfstate.persistence.dynamodb_backend import DynamoDBStateStore
from tfstate.persistence.memory_backend import MemoryStateStore
from tfstate.persistence.redis_backend import RedisStateStore
from tfstate.persistence.sql_backend import SQLStateStore

TABLE_NAME = "tfstate-states-test"
REGION = "us-east-1"


def create_state_table(client, name: str = TABLE_NAME) -> None:
    client.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "name", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "name", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def memory_store():
    return MemoryStateStore()


@pytest.fixture
def sql_store(tmp_path):
    store = SQLStateStore(url=f"sqlite:///{tmp_path / 'states.db'}", busy_timeout=10.0)
    yield store
    store.close()


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def redis_store(fake_server):
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
        return RedisStateStore(host="localhost", port=6379, db=0)


@pytest.fixture
def aws():
    with mock_aws():
        create_state_table(boto3.client("dynamodb", region_name=REGION))
        yield boto3.resource("dynamodb", region_name=REGION)


@pytest.fixture
def dynamodb_store(aws):
    return DynamoDBStateStore(table_name=TABLE_NAME, region=REGION)


@pytest.fixture(params=["memory", "sql", "redis", "dynamodb"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")
