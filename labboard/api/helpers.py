"""Shared handler plumbing: denials, lab lookups, and CAS list updates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, NoReturn

from labboard.auth_providers.base import AuthResult
from labboard.core.models import utcnow_iso
from labboard.exceptions import ConcurrentUpdateError, ConflictError, ForbiddenError
from labboard.rbac import normalize_ids
from labboard.storage.base import DocumentStore, Table

logger = logging.getLogger("labboard.api")
_audit_logger = logging.getLogger("labboard.audit")


def deny(auth: AuthResult, message: str, *, action: str, resource_id: str | None = None) -> NoReturn:
    """Record an authorization denial and raise 403."""
    _audit_logger.warning(
        "Authorization denied: %s on %s for %s",
        action,
        resource_id or "-",
        auth.identity,
        extra={
            "event_category": "audit",
            "action": "authorization_denied",
            "operation": action,
            "resource_id": resource_id,
            "user_id": auth.identity,
        },
    )
    raise ForbiddenError(message)


async def load_lab(store: DocumentStore, lab_id: Any) -> dict[str, Any] | None:
    """Fetch a lab by id, or None when the id is empty or unknown."""
    if not lab_id or not isinstance(lab_id, str):
        return None
    return await store.get(Table.LABS, lab_id)


async def update_id_list(
    store: DocumentStore,
    table: str,
    key: str,
    field: str,
    mutate: Callable[[list[str]], list[str]],
    *,
    retries: int,
) -> dict[str, Any] | None:
    """Read-modify-write an association list with compare-and-swap.

    The stored value is normalized first, so legacy comma-joined strings
    are rewritten as lists.  Returns the updated document, the unchanged
    document when *mutate* made no difference, or None when *key* does not
    exist.  Raises ConflictError when every attempt loses the race.
    """
    for attempt in range(1, retries + 1):
        doc = await store.get(table, key)
        if doc is None:
            return None
        raw = doc.get(field)
        current = list(normalize_ids(raw))
        updated = mutate(list(current))
        if updated == current and isinstance(raw, list):
            return doc
        try:
            return await store.update(
                table,
                key,
                {field: updated, "updatedAt": utcnow_iso()},
                expected_version=int(doc.get("version") or 0),
            )
        except ConcurrentUpdateError:
            logger.info(
                "Concurrent update on %s/%s.%s (attempt %d/%d)", table, key, field, attempt, retries
            )
    raise ConflictError(f"Could not update {field} on {key}; it is being modified concurrently")


def appending(value: str) -> Callable[[list[str]], list[str]]:
    def _mutate(ids: list[str]) -> list[str]:
        return ids if value in ids else [*ids, value]

    return _mutate


def removing(value: str) -> Callable[[list[str]], list[str]]:
    def _mutate(ids: list[str]) -> list[str]:
        return [i for i in ids if i != value]

    return _mutate
