"""Job application routes.

Applications are stored as "Match" records linking a student to a job.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from labboard.api.deps import get_store
from labboard.api.helpers import deny, load_lab
from labboard.auth import get_principal, require_role
from labboard.auth_providers.base import AuthResult
from labboard.core.models import Application, ApplicationStatus, utcnow_iso
from labboard.exceptions import NotFoundError, ValidationError
from labboard.rbac import STAFF_ROLES, Role, can_apply_to_job, can_manage_job, can_view_job
from labboard.storage.base import DocumentStore, Table

logger = logging.getLogger("labboard.api.applications")

router = APIRouter(tags=["Applications"])

_STAFF_ONLY_VIEW = "Unauthorized. You need Admin, Professor, or LabAssistant role to view applications."


class ApplyRequest(BaseModel):
    coverLetter: str = ""
    resumeUrl: str = ""
    resumeDetails: Any = None
    userDetails: dict[str, Any] | None = None


class UpdateStatusRequest(BaseModel):
    status: str = Field(min_length=1)


def _with_user_details(app: dict[str, Any], user: dict[str, Any] | None) -> dict[str, Any]:
    """Merge applicant profile data into an application; application data wins."""
    app = dict(app)
    details = dict(app.get("userDetails") or {})
    questions = {
        key: app.get(key) or details.get(key) or ""
        for key in ("summerAvailability", "hoursPerWeek", "expectations")
    }
    if user is not None:
        merged = {
            "email": details.get("email") or user.get("email") or "",
            "fullName": details.get("fullName") or user.get("fullName") or "",
            "phone": details.get("phone") or user.get("phone") or "",
            "education": details.get("education") or user.get("education") or "",
        }
        details = {**merged, **details}
        resume_url = app.get("resumeUrl") or user.get("resumeFileName")
        if resume_url:
            app["resumeUrl"] = resume_url
            details["resumeUrl"] = resume_url
    details.update(questions)
    app["userDetails"] = details

    resume = app.get("resumeDetails")
    if isinstance(resume, str) and resume:
        try:
            app["resumeDetails"] = json.loads(resume)
        except ValueError:
            logger.debug("resumeDetails on application %s is not JSON", app.get("id"))
    elif user is not None and isinstance(user.get("resumeData"), str):
        try:
            app["resumeDetails"] = json.loads(user["resumeData"])
        except ValueError:
            logger.debug("resumeData on user %s is not JSON", user.get("id"))
    return app


@router.post(
    "/jobs/{job_id}/applications",
    dependencies=[
        Depends(require_role(Role.STUDENT, message="Unauthorized. Only students can apply to jobs."))
    ],
)
async def apply_to_job(
    job_id: str,
    req: ApplyRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    job = await store.get(Table.JOBS, job_id)
    if job is None:
        raise NotFoundError("Job not found")
    if not can_apply_to_job(auth.identity, auth.roles, job):
        deny(
            auth,
            "You cannot apply to this job. It may not be open for applications.",
            action="apply_to_job",
            resource_id=job_id,
        )

    existing = await store.scan(Table.APPLICATIONS, {"jobId": job_id, "studentId": auth.identity})
    if existing:
        raise ValidationError("You have already applied for this job.")

    details = req.userDetails or {}
    application = Application(
        jobId=job_id,
        studentId=auth.identity,
        coverLetter=req.coverLetter,
        resumeUrl=req.resumeUrl,
        resumeDetails=req.resumeDetails,
        summerAvailability=details.get("summerAvailability") or "",
        hoursPerWeek=details.get("hoursPerWeek") or "",
        expectations=details.get("expectations") or "",
        userDetails=req.userDetails
        or {
            "email": auth.claims.get("email", ""),
            "fullName": "",
            "phone": "",
            "education": "",
        },
    )
    doc = application.to_document()
    await store.put(Table.APPLICATIONS, doc)
    logger.info("Student %s applied to job %s", auth.identity, job_id)
    return {"message": "Application submitted successfully", "application": doc}


@router.get(
    "/jobs/{job_id}/applications",
    dependencies=[Depends(require_role(*STAFF_ROLES, message=_STAFF_ONLY_VIEW))],
)
async def list_job_applications(
    job_id: str,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    job = await store.get(Table.JOBS, job_id)
    if job is None:
        raise NotFoundError("Job not found")
    lab = await load_lab(store, job.get("labId"))
    job_with_lab = {**job, "lab": lab} if lab is not None else job
    if not can_view_job(auth.identity, auth.roles, job_with_lab):
        deny(
            auth,
            "You do not have permission to view applications for this job",
            action="view_applications",
            resource_id=job_id,
        )

    applications = []
    for app in await store.scan(Table.APPLICATIONS, {"jobId": job_id}):
        applicant_id = app.get("userId") or app.get("studentId")
        user = await store.get(Table.USERS, applicant_id) if applicant_id else None
        applications.append(_with_user_details(app, user))
    return {"applications": applications, "count": len(applications)}


@router.get(
    "/applications/mine",
    dependencies=[
        Depends(
            require_role(Role.STUDENT, message="Unauthorized. Only students have applications.")
        )
    ],
)
async def list_my_applications(
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    applications = await store.scan(Table.APPLICATIONS, {"studentId": auth.identity})
    for app in applications:
        job = await store.get(Table.JOBS, app.get("jobId", ""))
        app["job"] = (
            {"id": job.get("id"), "title": job.get("title"), "status": job.get("status")}
            if job
            else None
        )
    return {"applications": applications, "count": len(applications)}


@router.put(
    "/applications/{application_id}/status",
    dependencies=[
        Depends(
            require_role(
                *STAFF_ROLES,
                message="Unauthorized. You do not have permission to update application status.",
            )
        )
    ],
)
async def update_application_status(
    application_id: str,
    req: UpdateStatusRequest,
    auth: AuthResult = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
):
    try:
        new_status = ApplicationStatus(req.status)
    except ValueError:
        allowed = ", ".join(s.value for s in ApplicationStatus)
        raise ValidationError(f"Invalid status '{req.status}'. Allowed: {allowed}") from None

    application = await store.get(Table.APPLICATIONS, application_id)
    if application is None:
        raise NotFoundError("Application not found")

    job = await store.get(Table.JOBS, application.get("jobId", ""))
    lab = await load_lab(store, job.get("labId")) if job else None
    if not can_manage_job(auth.identity, auth.roles, job, lab):
        deny(
            auth,
            "You do not have permission to update applications for this job",
            action="update_application_status",
            resource_id=application_id,
        )

    updated = await store.update(
        Table.APPLICATIONS,
        application_id,
        {"status": new_status.value, "updatedAt": utcnow_iso()},
    )
    if updated is None:
        raise NotFoundError("Application not found")
    logger.info("Application %s moved to %s by %s", application_id, new_status.value, auth.identity)
    return {"message": "Application status updated successfully", "match": updated}
