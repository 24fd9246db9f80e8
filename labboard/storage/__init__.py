"""Document storage backends."""

from __future__ import annotations

import os

from labboard.config import Settings, settings as default_settings
from labboard.storage.base import DocumentStore, Table
from labboard.storage.database import Database

__all__ = ["Database", "DocumentStore", "Table", "create_store"]


def create_store(config: Settings | None = None) -> DocumentStore:
    """Create the configured storage backend.

    Checks os.environ directly as well (for tests that set LB_STORAGE
    after the settings singleton is created).
    """
    config = config or default_settings
    backend = os.environ.get("LB_STORAGE", config.storage).lower()
    if backend == "dynamodb":
        from labboard.storage.dynamodb_db import DynamoDBStore

        return DynamoDBStore(
            table_names=config.table_names,
            region_name=config.aws_region,
            endpoint_url=config.dynamodb_endpoint_url,
        )
    return Database(os.environ.get("LB_DB_PATH", config.db_path))
