"""Lab management routes.

  GET    /labs                          List labs visible to the caller
  GET    /labs/{lab_id}                 Get a lab
  POST   /labs                          Create a lab (Admin)
  PUT    /labs/{lab_id}                 Update a lab
  DELETE /labs/{lab_id}                 Delete a lab (Admin)
  POST   /labs/{lab_id}/members         Add a user to a lab
  DELETE /labs/{lab_id}/members/{uid}   Remove a user from a lab
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from labboard.api.deps import get_cas_retries, get_store
from labboard.api.helpers import appending, deny, removing, update_id_list
from labboard.auth import get_principal, require_role
from labboard.auth_providers.base import AuthResult
from labboard.core.models import Lab, utcnow_iso
from labboard.exceptions import NotFoundError, ValidationError
from labboard.rbac import (
    STAFF_ROLES,
    Role,
    can_add_user_to_lab,
    can_modify_lab,
    can_remove_user_from_lab,
    can_view_lab,
    normalize_ids,
)
from labboard.storage.base import DocumentStore, Table

logger = logging.getLogger("labboard.api.labs")

router = APIRouter(prefix="/labs", tags=["Labs"])


class CreateLabRequest(BaseModel):
    name: str = ""
    professorIds: list[str] = Field(default_factory=list)
    labAssistantIds: list[str] = Field(default_factory=list)
    description: str = ""
    status: str = "ACTIVE"


class UpdateLabRequest(BaseModel):
    name: str | None = None
    professorIds: list[str] | None = None
    labAssistantIds: list[str] | None = None
    description: str | None = None
    status: str | None = None


class AddMemberRequest(BaseModel):
    userId: str = Field(min_length=1)
    role: str | None = None


def _lab_view(doc: dict[str, Any]) -> dict[str, Any]:
    """Lab as returned to clients, with association fields as lists."""
    return {
        "id": doc.get("id"),
        "labId": doc.get("id"),
        "name": doc.get("name"),
        "professorId": doc.get("professorId"),
        "professorIds": normalize_ids(doc.get("professorIds")),
        "labAssistantIds": normalize_ids(doc.get("labAssistantIds")),
        "description": doc.get("description") or "",
        "status": doc.get("status") or "ACTIVE",
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt") or doc.get("createdAt"),
    }


async def _get_lab_or_404(store: DocumentStore, lab_id: str) -> dict[str, Any]:
    lab = await store.get(Table.LABS, lab_id)
    if lab is None:
        raise NotFoundError("Lab not found")
    return lab


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
async def list_labs(
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    labs = [_lab_view(doc) for doc in await store.scan(Table.LABS)]
    labs = [lab for lab in labs if can_view_lab(auth.identity, auth.roles, lab)]
    return {"labs": labs, "count": len(labs)}


@router.get("/{lab_id}")
async def get_lab(
    lab_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    lab = await _get_lab_or_404(store, lab_id)
    if not can_view_lab(auth.identity, auth.roles, lab):
        deny(auth, "You do not have permission to view this lab", action="view_lab", resource_id=lab_id)
    return {"lab": _lab_view(lab)}


@router.post(
    "",
    status_code=201,
    dependencies=[Depends(require_role(Role.ADMIN, message="Unauthorized. Only Admins can create labs."))],
)
async def create_lab(req: CreateLabRequest, store: DocumentStore = Depends(get_store)):
    if not req.name or not req.professorIds:
        raise ValidationError(
            "Missing required fields. Name and at least one professor ID are required."
        )
    lab = Lab(
        name=req.name,
        professorId=req.professorIds[0],
        professorIds=req.professorIds,
        labAssistantIds=req.labAssistantIds,
        description=req.description,
        status=req.status,
    )
    doc = lab.to_document()
    await store.put(Table.LABS, doc)
    logger.info("Created lab %s (%s)", lab.id, lab.name)
    return {"lab": _lab_view(doc)}


@router.put(
    "/{lab_id}",
    dependencies=[
        Depends(
            require_role(
                Role.ADMIN,
                Role.PROFESSOR,
                message="Unauthorized. Only Admins and Professors can update labs.",
            )
        )
    ],
)
async def update_lab(
    lab_id: str,
    req: UpdateLabRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    lab = await _get_lab_or_404(store, lab_id)
    if not can_modify_lab(auth.identity, auth.roles, lab):
        deny(
            auth,
            "Unauthorized. You do not have permission to modify this lab.",
            action="modify_lab",
            resource_id=lab_id,
        )

    changes: dict[str, Any] = {"updatedAt": utcnow_iso()}
    if req.name:
        changes["name"] = req.name
    if req.professorIds:
        changes["professorIds"] = req.professorIds
        changes["professorId"] = req.professorIds[0]
    if req.labAssistantIds is not None:
        changes["labAssistantIds"] = req.labAssistantIds
    if req.description is not None:
        changes["description"] = req.description
    if req.status:
        changes["status"] = req.status

    updated = await store.update(Table.LABS, lab_id, changes)
    if updated is None:
        raise NotFoundError("Lab not found")
    return {"lab": _lab_view(updated)}


@router.delete(
    "/{lab_id}",
    dependencies=[Depends(require_role(Role.ADMIN, message="Unauthorized. Only Admins can delete labs."))],
)
async def delete_lab(
    lab_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    lab = await _get_lab_or_404(store, lab_id)
    if not can_modify_lab(auth.identity, auth.roles, lab):
        deny(
            auth,
            "Unauthorized. You do not have permission to delete this lab.",
            action="delete_lab",
            resource_id=lab_id,
        )
    deleted = await store.delete(Table.LABS, lab_id) or lab
    logger.info("Deleted lab %s", lab_id)
    return {"success": True, "message": "Lab deleted successfully", "lab": _lab_view(deleted)}


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/{lab_id}/members")
async def add_member(
    lab_id: str,
    req: AddMemberRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    retries: int = Depends(get_cas_retries),
):
    lab = await _get_lab_or_404(store, lab_id)
    if not can_add_user_to_lab(auth.identity, auth.roles, lab, req.role):
        deny(
            auth,
            "You do not have permission to add users to this lab",
            action="add_user_to_lab",
            resource_id=lab_id,
        )

    user = await update_id_list(
        store, Table.USERS, req.userId, "labIds", appending(lab_id), retries=retries
    )
    if user is None:
        raise NotFoundError("User not found")

    if req.role == Role.LAB_ASSISTANT:
        await update_id_list(
            store, Table.LABS, lab_id, "labAssistantIds", appending(req.userId), retries=retries
        )

    logger.info("Added user %s to lab %s as %s", req.userId, lab_id, req.role or "member")
    return {"message": "User added to lab successfully", "user": user}


@router.delete("/{lab_id}/members/{user_id}")
async def remove_member(
    lab_id: str,
    user_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    retries: int = Depends(get_cas_retries),
):
    lab = await _get_lab_or_404(store, lab_id)
    target = await store.get(Table.USERS, user_id)
    if target is None:
        raise NotFoundError("User not found")

    target_roles = normalize_ids(target.get("roles"))
    role_to_remove = target_roles[0] if target_roles else None
    if not can_remove_user_from_lab(auth.identity, auth.roles, lab, role_to_remove):
        deny(
            auth,
            "You do not have permission to remove users from this lab",
            action="remove_user_from_lab",
            resource_id=lab_id,
        )

    user = await update_id_list(
        store, Table.USERS, user_id, "labIds", removing(lab_id), retries=retries
    )
    if user is None:
        raise NotFoundError("User not found")

    if user_id in normalize_ids(lab.get("labAssistantIds")):
        await update_id_list(
            store, Table.LABS, lab_id, "labAssistantIds", removing(user_id), retries=retries
        )

    logger.info("Removed user %s from lab %s", user_id, lab_id)
    return {"message": "User removed from lab successfully", "user": user}
