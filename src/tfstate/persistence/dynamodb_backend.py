"""DynamoDB backend implementing IStateStore with conditional writes."""

from __future__ import annotations

from typing import Any, Callable

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from tfstate.core.exceptions import StorageError
from tfstate.core.types import validate_state_name
from tfstate.models.lock import LockRequest
from tfstate.models.state import StateRecord

logger = structlog.get_logger(__name__)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class DynamoDBStateStore:
    """Production IStateStore backed by a single DynamoDB table keyed by ``name``.

    Each mutation is one conditional write whose ConditionExpression encodes
    the lock rule, so DynamoDB performs check and write atomically. When the
    condition fails, the item is re-read and the StateRecord rule decides
    which failure to report. If the re-read shows the write would now be
    allowed, the lock changed in between and the write is retried.

    The document lives in a single item attribute, so it is bounded by
    DynamoDB's 400 KB item limit. Larger documents are rejected with
    StorageError before any write; use the sql or redis backend for them.
    """

    MAX_CONDITION_RETRIES = 5
    # 400 KB item limit minus room for the key and lock attributes
    MAX_DOCUMENT_BYTES = 384 * 1024

    def __init__(self, table_name: str = "tfstate-states", region: str = "us-east-1",
                 endpoint_url: str | None = None, max_attempts: int = 3,
                 connect_timeout: float = 5.0) -> None:
        self._table_name = table_name
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {
            "region_name": region,
            "config": Config(
                retries={"max_attempts": max_attempts, "mode": "standard"},
                connect_timeout=connect_timeout,
            ),
        }
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(table_name)

    def _get_item(self, name: str) -> dict[str, Any] | None:
        try:
            resp = self._table.get_item(Key={"name": name}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"DynamoDB GetItem failed for state={name!r}: {exc}") from exc
        return resp.get("Item")

    def _get_record(self, name: str) -> StateRecord:
        item = self._get_item(name)
        if item is None:
            return StateRecord(name=name)
        try:
            return StateRecord(
                name=name,
                data=item.get("data"),
                locked=bool(item.get("locked", False)),
                lock_id=item.get("lock_id"),
                lock_data=item.get("lock_data"),
            )
        except ValidationError as exc:
            raise StorageError(f"Corrupt state item for {name!r}: {exc}") from exc

    def _conditional(self, op: str, name: str, write: Callable[[], Any],
                     explain: Callable[[StateRecord], Any]) -> None:
        """Run a conditional ``write``; on condition failure let ``explain`` raise."""
        for attempt in range(1, self.MAX_CONDITION_RETRIES + 1):
            try:
                write()
                return
            except ClientError as exc:
                if _error_code(exc) != "ConditionalCheckFailedException":
                    raise StorageError(f"DynamoDB {op} failed for state={name!r}: {exc}") from exc
            except BotoCoreError as exc:
                raise StorageError(f"DynamoDB {op} failed for state={name!r}: {exc}") from exc
            explain(self._get_record(name))
            logger.debug("dynamodb_condition_retry", op=op, state=name, attempt=attempt)
        raise StorageError(
            f"DynamoDB {op} for state={name!r} gave up after {self.MAX_CONDITION_RETRIES} attempts"
        )

    # ---- IStateStore methods ----

    def get_state(self, name: str) -> str | None:
        validate_state_name(name)
        item = self._get_item(name)
        return item.get("data") if item else None

    def update_state(self, name: str, data: str, lock_id: str | None = None) -> None:
        validate_state_name(name)
        size = len(data.encode("utf-8"))
        if size > self.MAX_DOCUMENT_BYTES:
            logger.warning("state_too_large", state=name, size=size, limit=self.MAX_DOCUMENT_BYTES)
            raise StorageError(
                f"State {name!r} is {size} bytes, over the DynamoDB backend limit "
                f"of {self.MAX_DOCUMENT_BYTES} bytes"
            )
        # "name" and "data" are DynamoDB reserved words
        names = {"#name": "name", "#data": "data", "#locked": "locked"}
        condition = "attribute_not_exists(#name) OR #locked = :false"
        values: dict[str, Any] = {":data": data, ":false": False}
        if lock_id is not None:
            condition += " OR #lock_id = :lock_id"
            names["#lock_id"] = "lock_id"
            values[":lock_id"] = lock_id

        self._conditional(
            "update", name,
            lambda: self._table.update_item(
                Key={"name": name},
                UpdateExpression="SET #data = :data, #locked = if_not_exists(#locked, :false)",
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            ),
            lambda current: current.check_writable(lock_id),
        )

    def delete_state(self, name: str, force: bool = False) -> None:
        validate_state_name(name)
        if force:
            try:
                self._table.delete_item(Key={"name": name})
            except (ClientError, BotoCoreError) as exc:
                raise StorageError(f"DynamoDB delete failed for state={name!r}: {exc}") from exc
        else:
            self._conditional(
                "delete", name,
                lambda: self._table.delete_item(
                    Key={"name": name},
                    ConditionExpression="attribute_not_exists(#name) OR #locked = :false",
                    ExpressionAttributeNames={"#name": "name", "#locked": "locked"},
                    ExpressionAttributeValues={":false": False},
                ),
                lambda current: current.check_deletable(False),
            )
        logger.info("state_deleted", state=name, force=force)

    def lock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        self._conditional(
            "lock", name,
            lambda: self._table.update_item(
                Key={"name": name},
                UpdateExpression="SET #locked = :true, #lock_id = :lock_id, #lock_data = :lock_data",
                ConditionExpression="attribute_not_exists(#name) OR #locked = :false",
                ExpressionAttributeNames={
                    "#name": "name", "#locked": "locked",
                    "#lock_id": "lock_id", "#lock_data": "lock_data",
                },
                ExpressionAttributeValues={
                    ":true": True,
                    ":false": False,
                    ":lock_id": lock_request.id,
                    ":lock_data": lock_request.to_lock_data(),
                },
            ),
            lambda current: current.lock(lock_request),
        )
        logger.info("state_locked", state=name, lock_id=lock_request.id)

    def unlock_state(self, name: str, lock_request: LockRequest) -> None:
        validate_state_name(name)
        self._conditional(
            "unlock", name,
            lambda: self._table.update_item(
                Key={"name": name},
                UpdateExpression="SET #locked = :false REMOVE #lock_id, #lock_data",
                ConditionExpression="#locked = :true AND #lock_id = :lock_id",
                ExpressionAttributeNames={
                    "#locked": "locked", "#lock_id": "lock_id", "#lock_data": "lock_data",
                },
                ExpressionAttributeValues={
                    ":true": True,
                    ":false": False,
                    ":lock_id": lock_request.id,
                },
            ),
            lambda current: current.unlock(lock_request),
        )
        logger.info("state_unlocked", state=name, lock_id=lock_request.id)

    def ping(self) -> None:
        try:
            self._ddb.meta.client.describe_table(TableName=self._table_name)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"DynamoDB table {self._table_name!r} unavailable: {exc}") from exc

    def close(self) -> None:
        return None
