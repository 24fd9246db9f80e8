"""Shared fixtures for LabBoard tests."""

from __future__ import annotations

import os

TEST_JWT_SECRET = "labboard-test-secret-0123456789abcdef"

# Must be set before labboard.config builds its settings singleton.
os.environ.setdefault("LB_JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("LB_RATE_LIMIT", "none")
os.environ.setdefault("LB_AUTH_PROVIDER", "jwt")

import time  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from labboard.api.app import create_app  # noqa: E402
from labboard.identity import LocalDirectory  # noqa: E402
from labboard.storage.base import Table  # noqa: E402
from labboard.storage.database import Database  # noqa: E402

LONG_DESCRIPTION = "Build spike-sorting pipelines for high-density recordings. " * 5


def mint_token(sub: str, groups=None, secret: str = TEST_JWT_SECRET, **claims) -> str:
    """HS256 token shaped like a Cognito ID token."""
    payload = {"sub": sub, "exp": int(time.time()) + 3600, **claims}
    if groups is not None:
        payload["cognito:groups"] = groups
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Callable building an Authorization header for a subject and its groups."""

    def _headers(sub: str, groups=None, **claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {mint_token(sub, groups, **claims)}"}

    return _headers


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh SQLite document store for each test."""
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def directory():
    return LocalDirectory()


@pytest_asyncio.fixture
async def client(db, directory):
    """HTTP test client wired to a fresh store and directory."""
    app = create_app(store=db, directory=directory)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def seeded(db):
    """A small campus: two labs, their people, and a handful of jobs.

    L1  professorId=P1, professorIds=[P1, P2], labAssistantIds=[A1]
    L2  professorId=P3, labAssistantIds stored as the string "A2,A3"
    """
    labs = [
        {
            "id": "L1",
            "name": "Neuro Lab",
            "professorId": "P1",
            "professorIds": ["P1", "P2"],
            "labAssistantIds": ["A1"],
            "description": "Cortical circuits. " * 10,
            "status": "ACTIVE",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "version": 1,
        },
        {
            "id": "L2",
            "name": "Robotics Lab",
            "professorId": "P3",
            "professorIds": "P3",
            "labAssistantIds": "A2,A3",
            "description": "Legged locomotion.",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "version": 1,
        },
    ]
    users = [
        {"id": "ADM", "email": "adm@example.edu", "roles": ["Admin"], "labIds": []},
        {"id": "P1", "email": "p1@example.edu", "roles": ["Professor"], "labIds": ["L1"]},
        {"id": "P2", "email": "p2@example.edu", "roles": ["Professor"], "labIds": ["L1"]},
        {"id": "P3", "email": "p3@example.edu", "roles": ["Professor"], "labIds": "L2"},
        {"id": "A1", "email": "a1@example.edu", "roles": ["LabAssistant"], "labIds": ["L1"]},
        {"id": "A2", "email": "a2@example.edu", "roles": "LabAssistant", "labIds": "L2"},
        {"id": "S1", "email": "s1@example.edu", "roles": ["Student"], "labIds": ["L1"]},
        {"id": "S2", "email": "s2@example.edu", "roles": ["Student"], "labIds": "L2"},
        {"id": "S3", "email": "s3@example.edu", "roles": ["Student"], "labIds": []},
    ]
    jobs = [
        {
            "id": "J1",
            "jobId": "J1",
            "title": "Spike sorting RA",
            "description": LONG_DESCRIPTION,
            "labId": "L1",
            "professorId": "P1",
            "createdBy": "P1",
            "status": "OPEN",
            "visibility": "public",
            "requirements": ["Python"],
            "createdAt": "2024-02-01T00:00:00.000Z",
            "deletedAt": None,
            "version": 1,
        },
        {
            "id": "J2",
            "jobId": "J2",
            "title": "Draft posting",
            "labId": "L1",
            "professorId": "A1",
            "createdBy": "A1",
            "status": "DRAFT",
            "createdAt": "2024-02-02T00:00:00.000Z",
            "version": 1,
        },
        {
            "id": "J3",
            "jobId": "J3",
            "title": "Internal robotics role",
            "labId": "L2",
            "professorId": "P3",
            "createdBy": "P3",
            "status": "open",
            "visibility": "private",
            "createdAt": "2024-02-03T00:00:00.000Z",
            "version": 1,
        },
        {
            "id": "J4",
            "jobId": "J4",
            "title": "Withdrawn posting",
            "labId": "L1",
            "professorId": "P1",
            "createdBy": "P1",
            "status": "OPEN",
            "deletedAt": "2024-03-01T00:00:00.000Z",
            "version": 1,
        },
    ]
    applications = [
        {"id": "M1", "jobId": "J1", "studentId": "S1", "status": "Pending", "version": 1},
        {"id": "M2", "jobId": "J1", "studentId": "S2", "status": "Reviewed", "version": 1},
    ]
    for lab in labs:
        await db.put(Table.LABS, lab)
    for user in users:
        await db.put(Table.USERS, user)
    for job in jobs:
        await db.put(Table.JOBS, job)
    for app in applications:
        await db.put(Table.APPLICATIONS, app)
    return db
