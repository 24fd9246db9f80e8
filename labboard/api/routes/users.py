"""User directory, account provisioning and admin role management routes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from labboard.api.deps import get_directory, get_store
from labboard.auth import get_principal, require_role
from labboard.auth_providers.base import AuthResult
from labboard.core.models import User, UserStatus, utcnow_iso
from labboard.exceptions import NotFoundError, ValidationError
from labboard.identity import GroupDirectory
from labboard.rbac import ALL_ROLES, STAFF_ROLES, Role, has_role, normalize_ids
from labboard.storage.base import DocumentStore, Table

logger = logging.getLogger("labboard.api.users")
_audit_logger = logging.getLogger("labboard.audit")

router = APIRouter(prefix="/users", tags=["Users"])

_ADMIN_ONLY = require_role(Role.ADMIN, message="Unauthorized. Only Admins can manage users.")


class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3)
    roles: list[str] = Field(min_length=1)
    temporaryPassword: str | None = None
    givenName: str | None = None


class UpdateRolesRequest(BaseModel):
    roles: list[str] = Field(min_length=1)


class UpdateStatusRequest(BaseModel):
    status: str = Field(min_length=1)


def _user_view(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "userId": doc.get("id"),
        "email": doc.get("email"),
        "givenName": doc.get("givenName"),
        "roles": normalize_ids(doc.get("roles")),
        "labIds": normalize_ids(doc.get("labIds")),
        "status": doc.get("status") or "UNKNOWN",
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt") or doc.get("createdAt"),
    }


def _check_roles(roles: list[str]) -> None:
    invalid = [r for r in roles if r not in ALL_ROLES]
    if invalid:
        raise ValidationError(f"Invalid roles: {', '.join(invalid)}")


async def _get_user_or_404(store: DocumentStore, user_id: str) -> dict[str, Any]:
    user = await store.get(Table.USERS, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get(
    "",
    dependencies=[
        Depends(
            require_role(
                *STAFF_ROLES,
                message=(
                    "Unauthorized. You need Admin, Professor, or LabAssistant role "
                    "to access this resource."
                ),
            )
        )
    ],
)
async def list_users(
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    users = [_user_view(doc) for doc in await store.scan(Table.USERS)]

    if not has_role(auth.roles, Role.ADMIN):
        me = next((u for u in users if u["userId"] == auth.identity), None)
        my_labs = set(me["labIds"]) if me else set()
        users = [
            u
            for u in users
            if has_role(u["roles"], Role.STUDENT) and my_labs.intersection(u["labIds"])
        ]

    return {"users": users, "count": len(users)}


@router.post("", status_code=201, dependencies=[Depends(_ADMIN_ONLY)])
async def create_user(
    req: CreateUserRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    directory: GroupDirectory = Depends(get_directory),
):
    """Create an identity-provider account, its groups and its user document."""
    if "@" not in req.email:
        raise ValidationError("A valid email is required")
    _check_roles(req.roles)

    account = await directory.create_user(req.email, req.temporaryPassword, req.givenName)
    for role in req.roles:
        await directory.add_to_group(account.username, role)

    doc = User(
        id=account.user_id,
        email=req.email,
        givenName=req.givenName or req.email.split("@")[0],
        roles=req.roles,
        status=UserStatus.FORCE_CHANGE_PASSWORD.value,
    ).to_document()
    doc["userId"] = account.user_id
    await store.put(Table.USERS, doc)

    _audit_logger.info(
        "User %s created with roles %s by %s",
        account.user_id,
        req.roles,
        auth.identity,
        extra={
            "event_category": "audit",
            "action": "user_created",
            "user_id": auth.identity,
            "resource_id": account.user_id,
        },
    )
    return _user_view(doc)


@router.post("/me")
async def register_self(
    response: Response,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    directory: GroupDirectory = Depends(get_directory),
):
    """Make sure the caller has a user document.

    Called by the client after sign-up confirmation and on later sign-ins.
    A new caller holding no recognised group is placed in ``Student``.
    """
    now = utcnow_iso()
    existing = await store.get(Table.USERS, auth.identity)
    if existing is not None:
        updated = await store.update(Table.USERS, auth.identity, {"lastLogin": now, "updatedAt": now})
        return {"created": False, "user": _user_view(updated or existing)}

    claims = auth.claims
    email = claims.get("email") or ""
    roles = [r for r in auth.roles if r in ALL_ROLES]
    if not roles:
        roles = [Role.STUDENT.value]
        username = claims.get("cognito:username") or claims.get("username") or email or auth.identity
        await directory.add_to_group(username, Role.STUDENT.value)

    doc = User(
        id=auth.identity,
        email=email,
        givenName=claims.get("given_name") or "",
        roles=roles,
        status=UserStatus.CONFIRMED.value,
        lastLogin=now,
    ).to_document()
    doc["userId"] = auth.identity
    await store.put(Table.USERS, doc)
    logger.info("Provisioned user %s with roles %s", auth.identity, roles)

    response.status_code = 201
    return {"created": True, "user": _user_view(doc)}


@router.put("/{user_id}/roles", dependencies=[Depends(_ADMIN_ONLY)])
async def update_user_roles(
    user_id: str,
    req: UpdateRolesRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    directory: GroupDirectory = Depends(get_directory),
):
    _check_roles(req.roles)
    user = await _get_user_or_404(store, user_id)
    username = user.get("email") or user_id

    current = await directory.list_groups(username)
    to_add = [r for r in req.roles if r not in current]
    to_remove = [g for g in current if g not in req.roles]
    for group in to_add:
        await directory.add_to_group(username, group)
    for group in to_remove:
        await directory.remove_from_group(username, group)

    await store.update(Table.USERS, user_id, {"roles": req.roles, "updatedAt": utcnow_iso()})
    _audit_logger.info(
        "Roles for %s set to %s by %s",
        user_id,
        req.roles,
        auth.identity,
        extra={"event_category": "audit", "action": "roles_updated", "user_id": auth.identity},
    )
    return {
        "message": "User roles updated successfully",
        "userId": user_id,
        "roles": req.roles,
        "groupsAdded": to_add,
        "groupsRemoved": to_remove,
    }


@router.put("/{user_id}/status", dependencies=[Depends(_ADMIN_ONLY)])
async def update_user_status(
    user_id: str,
    req: UpdateStatusRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    directory: GroupDirectory = Depends(get_directory),
):
    try:
        new_status = UserStatus(req.status)
    except ValueError:
        allowed = ", ".join(s.value for s in UserStatus)
        raise ValidationError(f"Invalid status '{req.status}'. Allowed: {allowed}") from None

    user = await _get_user_or_404(store, user_id)
    username = user.get("email") or user_id

    if new_status is UserStatus.DISABLED:
        await directory.disable_user(username)
    elif new_status is UserStatus.CONFIRMED:
        await directory.enable_user(username)

    await store.update(Table.USERS, user_id, {"status": new_status.value, "updatedAt": utcnow_iso()})
    _audit_logger.info(
        "Status for %s set to %s by %s",
        user_id,
        new_status.value,
        auth.identity,
        extra={"event_category": "audit", "action": "status_updated", "user_id": auth.identity},
    )
    return {"message": "User status updated successfully", "userId": user_id, "status": new_status.value}
