"""Job posting routes.

  GET    /jobs                    List jobs visible to the caller
  GET    /jobs/{job_id}           Get a job
  POST   /jobs                    Create a job
  PUT    /jobs/{job_id}           Update a job
  DELETE /jobs/{job_id}           Delete a job
  GET    /public-jobs             Unauthenticated preview of open public jobs
  GET    /public-jobs/{job_id}    Unauthenticated preview of one open public job
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from labboard.api.deps import get_store
from labboard.api.helpers import deny, load_lab
from labboard.auth import get_principal, require_role
from labboard.auth_providers.base import AuthResult
from labboard.core.models import Job, JobStatus, utcnow_iso
from labboard.exceptions import NotFoundError, StorageError, ValidationError
from labboard.rbac import (
    ALL_ROLES,
    STAFF_ROLES,
    Role,
    can_create_job,
    can_manage_job,
    can_view_job,
    has_any_role,
    has_role,
)
from labboard.storage.base import DocumentStore, Table

logger = logging.getLogger("labboard.api.jobs")

router = APIRouter(prefix="/jobs", tags=["Jobs"])
public_router = APIRouter(prefix="/public-jobs", tags=["Public"])

PREVIEW_DESCRIPTION_CHARS = 150
PREVIEW_LAB_DESCRIPTION_CHARS = 100
PREVIEW_REQUIREMENTS = ["View details by logging in"]


class CreateJobRequest(BaseModel):
    title: str = ""
    labId: str = ""
    description: str = ""
    status: str = JobStatus.DRAFT.value
    visibility: str = "public"
    requirements: list[str] | None = None
    academicLevel: str = "any"


class UpdateJobRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    requirements: list[str] | None = None
    status: str | None = None
    visibility: str | None = None
    academicLevel: str | None = None


# ---------------------------------------------------------------------------
# Shaping
# ---------------------------------------------------------------------------


def _truncate(text: str | None, limit: int) -> str:
    if not text:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


def _job_view(doc: dict[str, Any], lab: dict[str, Any] | None) -> dict[str, Any]:
    """Stored job with defaults filled in and the lab snapshot attached."""
    job = dict(doc)
    job["jobId"] = doc.get("jobId") or doc.get("id")
    job["id"] = doc.get("id") or doc.get("jobId")
    job["title"] = doc.get("title") or ""
    job["description"] = doc.get("description") or ""
    job["status"] = doc.get("status") or JobStatus.DRAFT.value
    job["visibility"] = doc.get("visibility") or "public"
    job["requirements"] = doc.get("requirements") or []
    job["updatedAt"] = doc.get("updatedAt") or doc.get("createdAt")
    job.pop("lab", None)
    if lab is not None:
        job["lab"] = lab
    return job


def _preview(job: dict[str, Any]) -> dict[str, Any]:
    preview = {
        "jobId": job.get("jobId"),
        "id": job.get("id"),
        "title": job.get("title"),
        "description": _truncate(job.get("description"), PREVIEW_DESCRIPTION_CHARS),
        "requirements": list(PREVIEW_REQUIREMENTS),
        "status": job.get("status"),
        "visibility": job.get("visibility"),
        "isPreview": True,
        "createdAt": job.get("createdAt"),
        "updatedAt": job.get("updatedAt"),
    }
    lab = job.get("lab")
    if lab:
        preview["lab"] = {
            "id": lab.get("id"),
            "labId": lab.get("labId") or lab.get("id"),
            "name": lab.get("name"),
            "description": _truncate(lab.get("description"), PREVIEW_LAB_DESCRIPTION_CHARS),
        }
    return preview


def _is_public_open(job: dict[str, Any]) -> bool:
    status = job.get("status")
    is_open = isinstance(status, str) and status.upper() == JobStatus.OPEN.value
    visibility = job.get("visibility")
    return is_open and (not visibility or visibility == "public")


def _is_student_only(roles: list[str]) -> bool:
    return has_role(roles, Role.STUDENT) and not has_any_role(roles, STAFF_ROLES)


async def _lab_or_none(store: DocumentStore, lab_id: Any) -> dict[str, Any] | None:
    """Lab lookup that tolerates store failures; guards then see no lab."""
    try:
        return await load_lab(store, lab_id)
    except StorageError:
        logger.warning("Lab lookup failed for %s", lab_id, exc_info=True)
        return None


async def _active_jobs(store: DocumentStore, lab_id: str | None) -> list[dict[str, Any]]:
    docs = await store.scan(Table.JOBS, {"deletedAt": None})
    if lab_id:
        docs = [d for d in docs if d.get("labId") == lab_id]
    labs: dict[str, dict[str, Any] | None] = {}
    jobs = []
    for doc in docs:
        job_lab_id = doc.get("labId")
        if job_lab_id not in labs:
            labs[job_lab_id] = await _lab_or_none(store, job_lab_id)
        jobs.append(_job_view(doc, labs[job_lab_id]))
    return jobs


async def _get_job_or_404(store: DocumentStore, job_id: str) -> dict[str, Any]:
    job = await store.get(Table.JOBS, job_id)
    if job is None:
        raise NotFoundError("Job not found")
    return job


# ---------------------------------------------------------------------------
# Authenticated routes
# ---------------------------------------------------------------------------


@router.get(
    "",
    dependencies=[
        Depends(
            require_role(
                *ALL_ROLES,
                message="Unauthorized. You need a valid role to access this resource.",
            )
        )
    ],
)
async def list_jobs(
    labId: str | None = Query(default=None),  # noqa: N803
    status: str | None = Query(default=None),
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    jobs = await _active_jobs(store, labId)
    if status:
        jobs = [j for j in jobs if j.get("status") == status]

    if has_any_role(auth.roles, STAFF_ROLES):
        counts = Counter(a.get("jobId") for a in await store.scan(Table.APPLICATIONS))
        for job in jobs:
            job["applicantsCount"] = counts.get(job["id"], 0)

    if not has_role(auth.roles, Role.ADMIN):
        jobs = [j for j in jobs if can_view_job(auth.identity, auth.roles, j)]

    if _is_student_only(auth.roles):
        for job in jobs:
            job.pop("applicantsCount", None)

    logger.debug("User %s can see %d jobs", auth.identity, len(jobs))
    return {"jobs": jobs, "count": len(jobs)}


@router.get(
    "/{job_id}",
    dependencies=[
        Depends(
            require_role(
                *ALL_ROLES,
                message="Unauthorized. You need a valid role to access this resource.",
            )
        )
    ],
)
async def get_job(
    job_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    doc = await _get_job_or_404(store, job_id)
    job = _job_view(doc, await _lab_or_none(store, doc.get("labId")))

    if has_any_role(auth.roles, STAFF_ROLES):
        applications = await store.scan(Table.APPLICATIONS, {"jobId": job["id"]})
        job["applicantsCount"] = len(applications)

    if not can_view_job(auth.identity, auth.roles, job):
        deny(auth, "You do not have permission to view this job", action="view_job", resource_id=job_id)

    if _is_student_only(auth.roles):
        job.pop("applicantsCount", None)
    return job


@router.post(
    "",
    status_code=201,
    dependencies=[
        Depends(
            require_role(
                *STAFF_ROLES,
                message=(
                    "Unauthorized. You need Admin, Professor, or LabAssistant role to create jobs."
                ),
            )
        )
    ],
)
async def create_job(
    req: CreateJobRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    if not req.title or not req.labId:
        raise ValidationError("Missing required parameters: title and labId are required")

    lab = await load_lab(store, req.labId)
    if lab is None:
        raise NotFoundError("Lab not found")
    if not can_create_job(auth.identity, auth.roles, req.labId, lab):
        deny(
            auth,
            "You do not have permission to create jobs for this lab",
            action="create_job",
            resource_id=req.labId,
        )

    job = Job(
        title=req.title,
        description=req.description,
        labId=req.labId,
        professorId=auth.identity,
        createdBy=auth.identity,
        status=req.status or JobStatus.DRAFT.value,
        visibility=req.visibility or "public",
        requirements=req.requirements or [],
        academicLevel=req.academicLevel or "any",
    )
    doc = job.to_document()
    await store.put(Table.JOBS, doc)
    logger.info("User %s created job %s in lab %s", auth.identity, job.id, req.labId)
    return {"message": "Job created successfully", "job": doc}


@router.put(
    "/{job_id}",
    dependencies=[
        Depends(
            require_role(
                *STAFF_ROLES,
                message=(
                    "Unauthorized. You need Admin, Professor, or LabAssistant role to update jobs."
                ),
            )
        )
    ],
)
async def update_job(
    job_id: str,
    req: UpdateJobRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    job = await _get_job_or_404(store, job_id)
    lab = await _lab_or_none(store, job.get("labId"))
    if not can_manage_job(auth.identity, auth.roles, job, lab):
        deny(auth, "You do not have permission to update this job", action="update_job", resource_id=job_id)

    changes = req.model_dump(exclude_none=True)
    changes["updatedAt"] = utcnow_iso()
    updated = await store.update(Table.JOBS, job_id, changes)
    if updated is None:
        raise NotFoundError("Job not found")
    return {"message": "Job updated successfully", "job": _job_view(updated, lab)}


@router.delete(
    "/{job_id}",
    dependencies=[
        Depends(
            require_role(
                *STAFF_ROLES,
                message=(
                    "Unauthorized. You need Admin, Professor, or LabAssistant role to delete jobs."
                ),
            )
        )
    ],
)
async def delete_job(
    job_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    job = await _get_job_or_404(store, job_id)
    lab = await _lab_or_none(store, job.get("labId"))
    if not can_manage_job(auth.identity, auth.roles, job, lab):
        deny(auth, "You do not have permission to delete this job", action="delete_job", resource_id=job_id)

    deleted = await store.delete(Table.JOBS, job_id)
    logger.info("User %s deleted job %s", auth.identity, job_id)
    return {"message": "Job deleted successfully", "job": deleted}


# ---------------------------------------------------------------------------
# Public previews (no authentication)
# ---------------------------------------------------------------------------


@public_router.get("")
async def list_public_jobs(
    labId: str | None = Query(default=None),  # noqa: N803
    store: DocumentStore = Depends(get_store),
):
    jobs = [_preview(j) for j in await _active_jobs(store, labId) if _is_public_open(j)]
    return {"jobs": jobs, "count": len(jobs)}


@public_router.get("/{job_id}")
async def get_public_job(job_id: str, store: DocumentStore = Depends(get_store)):
    doc = await store.get(Table.JOBS, job_id)
    if doc is None or doc.get("deletedAt") or not _is_public_open(doc):
        raise NotFoundError("Job not found or not available")
    job = _job_view(doc, await _lab_or_none(store, doc.get("labId")))
    return _preview(job)
