"""Request-scoped dependencies shared by the route modules."""

from __future__ import annotations

from fastapi import Request

from labboard.identity import GroupDirectory
from labboard.storage.base import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_directory(request: Request) -> GroupDirectory:
    return request.app.state.directory


def get_cas_retries(request: Request) -> int:
    return request.app.state.cas_retries
