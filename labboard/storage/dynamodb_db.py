"""DynamoDB document store for LabBoard.

Uses boto3's DynamoDB resource API, same interface as database.py.
Selectable via LB_STORAGE=dynamodb.  boto3 is blocking, so every call is
pushed onto a worker thread with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from functools import reduce
from typing import Any

from labboard.exceptions import ConcurrentUpdateError, StorageError
from labboard.storage.base import Table, resolve_table

logger = logging.getLogger("labboard.storage.dynamodb")

DEFAULT_TABLE_NAMES: dict[str, str] = {
    Table.LABS.value: "Lab",
    Table.JOBS.value: "Job",
    Table.USERS.value: "User",
    Table.APPLICATIONS.value: "Match",
}


def _to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; send them as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    """Numbers come back as Decimal; hand out int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


class DynamoDBStore:
    """Async wrapper over boto3 DynamoDB tables with the same interface as Database."""

    backend_name = "dynamodb"

    def __init__(
        self,
        table_names: dict[str, str] | None = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        resource: Any = None,
    ) -> None:
        self.table_names = {**DEFAULT_TABLE_NAMES, **(table_names or {})}
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._resource = resource

    async def connect(self) -> None:
        if self._resource is not None:
            return
        import boto3

        self._resource = boto3.resource(
            "dynamodb", region_name=self.region_name, endpoint_url=self.endpoint_url
        )

    async def close(self) -> None:
        self._resource = None

    @property
    def resource(self):
        if self._resource is None:
            raise RuntimeError("DynamoDB resource not connected. Call connect() first.")
        return self._resource

    def _table(self, table: str):
        return self.resource.Table(self.table_names[resolve_table(table).value])

    async def _call(self, operation: str, fn, **kwargs) -> dict[str, Any]:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "ConditionalCheckFailedException":
                raise ConcurrentUpdateError(f"Conditional {operation} failed") from exc
            raise StorageError(f"DynamoDB {operation} failed: {code or exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"DynamoDB {operation} failed: {exc}") from exc

    # --- Reads ---

    async def get(self, table: str, key: str) -> dict[str, Any] | None:
        resp = await self._call("get_item", self._table(table).get_item, Key={"id": key})
        item = resp.get("Item")
        return _from_dynamo(item) if item is not None else None

    async def scan(self, table: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        from boto3.dynamodb.conditions import Attr

        kwargs: dict[str, Any] = {}
        if filters:
            conditions = [
                (Attr(name).not_exists() | Attr(name).eq(None))
                if value is None
                else Attr(name).eq(_to_dynamo(value))
                for name, value in filters.items()
            ]
            kwargs["FilterExpression"] = reduce(lambda a, b: a & b, conditions)

        tbl = self._table(table)
        items: list[dict[str, Any]] = []
        while True:
            resp = await self._call("scan", tbl.scan, **kwargs)
            items.extend(_from_dynamo(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    # --- Writes ---

    async def put(self, table: str, item: dict[str, Any]) -> None:
        if not item.get("id"):
            raise ValueError("Document must have an 'id'")
        await self._call("put_item", self._table(table).put_item, Item=_to_dynamo(item))

    async def update(
        self,
        table: str,
        key: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any] | None:
        from boto3.dynamodb.conditions import Attr

        current = await self.get(table, key)
        if current is None:
            return None

        base_version = int(current.get("version") or 0)
        if expected_version is not None and expected_version != base_version:
            raise ConcurrentUpdateError(
                f"{table}/{key} is at version {base_version}, expected {expected_version}"
            )

        names: dict[str, str] = {"#version": "version"}
        values: dict[str, Any] = {":next_version": base_version + 1}
        assignments = ["#version = :next_version"]
        for i, (field, value) in enumerate(changes.items()):
            if field in ("id", "version"):
                continue
            names[f"#f{i}"] = field
            values[f":v{i}"] = _to_dynamo(value)
            assignments.append(f"#f{i} = :v{i}")

        if base_version == 0:
            condition = Attr("version").not_exists() | Attr("version").eq(0)
        else:
            condition = Attr("version").eq(base_version)

        resp = await self._call(
            "update_item",
            self._table(table).update_item,
            Key={"id": key},
            UpdateExpression="SET " + ", ".join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
            ConditionExpression=condition,
            ReturnValues="ALL_NEW",
        )
        return _from_dynamo(resp.get("Attributes", {}))

    async def delete(self, table: str, key: str) -> dict[str, Any] | None:
        resp = await self._call(
            "delete_item",
            self._table(table).delete_item,
            Key={"id": key},
            ReturnValues="ALL_OLD",
        )
        item = resp.get("Attributes")
        return _from_dynamo(item) if item else None
