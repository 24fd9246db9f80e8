"""Role-Based Access Control for LabBoard.

Every mutation and read across labs, jobs, and applications is gated by one
of the guards in this module.  Guards are pure functions of the caller's
subject id, the caller's role list, and snapshots of the documents involved.
They never perform lookups of their own, never raise, and resolve missing
supporting data to ``False``.

Roles (closed set, exact and case-sensitive):
    Admin         bypasses every ownership and membership check
    Professor     owns labs via ``professorId`` / ``professorIds``
    LabAssistant  assists labs listed in ``labAssistantIds``
    Student       browses jobs and applies to open ones

Association fields (``professorIds``, ``labAssistantIds``, ``labIds``) are
stored either as lists or as comma-joined strings.  ``normalize_ids`` is the
single boundary that turns either representation into a list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

logger = logging.getLogger("labboard.rbac")


class Role(StrEnum):
    """Enumerated platform roles (values are the identity provider group names)."""

    ADMIN = "Admin"
    PROFESSOR = "Professor"
    LAB_ASSISTANT = "LabAssistant"
    STUDENT = "Student"


#: Roles each role oversees.  Informational only: ``has_role`` is an exact
#: membership test and never walks this mapping.
ROLE_HIERARCHY: dict[Role, tuple[Role, ...]] = {
    Role.ADMIN: (Role.PROFESSOR, Role.LAB_ASSISTANT, Role.STUDENT),
    Role.PROFESSOR: (Role.LAB_ASSISTANT, Role.STUDENT),
    Role.LAB_ASSISTANT: (Role.STUDENT,),
    Role.STUDENT: (),
}

#: Coarse resource x role -> actions table.  Advisory: the entity guards
#: below are authoritative when the two disagree.
RESOURCE_PERMISSIONS: dict[str, dict[Role, frozenset[str]]] = {
    "Lab": {
        Role.ADMIN: frozenset({"create", "read", "update", "delete", "addUser", "removeUser"}),
        Role.PROFESSOR: frozenset({"create", "read", "update", "addUser", "removeUser"}),
        Role.LAB_ASSISTANT: frozenset({"read"}),
        Role.STUDENT: frozenset(),
    },
    "User": {
        Role.ADMIN: frozenset({"create", "read", "update", "delete"}),
        Role.PROFESSOR: frozenset({"read"}),
        Role.LAB_ASSISTANT: frozenset({"read"}),
        Role.STUDENT: frozenset({"read"}),
    },
    "Job": {
        Role.ADMIN: frozenset({"create", "read", "update", "delete"}),
        Role.PROFESSOR: frozenset({"create", "read", "update", "delete"}),
        Role.LAB_ASSISTANT: frozenset({"create", "read", "update", "delete"}),
        Role.STUDENT: frozenset({"read", "apply"}),
    },
}

#: Roles a professor may grant or revoke when managing lab membership.
PROFESSOR_MANAGEABLE_ROLES: frozenset[str] = frozenset({Role.LAB_ASSISTANT, Role.STUDENT})

STAFF_ROLES: tuple[Role, ...] = (Role.ADMIN, Role.PROFESSOR, Role.LAB_ASSISTANT)
ALL_ROLES: tuple[Role, ...] = tuple(Role)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_ids(value: Any) -> list[str]:
    """Return an association field as an ordered list of strings.

    Lists and tuples come back as lists, a string is split on ``,`` (no
    trimming, no de-duplication, so ``"a, b"`` keeps the space), and
    ``None`` or any other type yields an empty list.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, str):
        return value.split(",")
    return []


def roles_from_claim(value: Any) -> list[str]:
    """Turn a group-membership claim into the role list guards expect."""
    return normalize_ids(value)


def coerce_roles(user_roles: Any) -> list[str]:
    """Role input as a list: ``None`` is empty and a raw claim string is split."""
    if user_roles is None or isinstance(user_roles, (str, list, tuple)):
        return normalize_ids(user_roles)
    if isinstance(user_roles, Iterable) and not isinstance(user_roles, Mapping):
        return list(user_roles)
    return []


# ---------------------------------------------------------------------------
# Role primitives
# ---------------------------------------------------------------------------


def has_role(user_roles: Iterable[str] | str | None, role: str) -> bool:
    """Exact, case-sensitive membership test."""
    return role in coerce_roles(user_roles)


def has_any_role(user_roles: Iterable[str] | str | None, roles: Iterable[str]) -> bool:
    """True when any of *roles* is held."""
    held = coerce_roles(user_roles)
    return any(role in held for role in roles)


def has_permission(user_roles: Iterable[str] | str | None, resource: str, action: str) -> bool:
    """Check the coarse permission table for *action* on *resource*."""
    resource_permissions = RESOURCE_PERMISSIONS.get(resource)
    if not resource_permissions:
        return False
    for r in coerce_roles(user_roles):
        try:
            role = Role(r)
        except (ValueError, TypeError):
            continue
        if action in resource_permissions.get(role, frozenset()):
            return True
    return False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _field(record: Mapping[str, Any] | None, name: str) -> Any:
    if not isinstance(record, Mapping):
        return None
    return record.get(name)


def _record_id(record: Mapping[str, Any] | None) -> Any:
    return _field(record, "id") or _field(record, "jobId") or _field(record, "labId")


def _is_professor_of(user_id: str, lab: Mapping[str, Any] | None) -> bool:
    """Primary ``professorId`` or membership in ``professorIds``."""
    if _field(lab, "professorId") == user_id:
        return True
    return user_id in normalize_ids(_field(lab, "professorIds"))


def _is_assistant_of(user_id: str, lab: Mapping[str, Any] | None) -> bool:
    return user_id in normalize_ids(_field(lab, "labAssistantIds"))


def _embedded_lab(job: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    lab = _field(job, "lab")
    return lab if isinstance(lab, Mapping) else None


# ---------------------------------------------------------------------------
# Lab guards
# ---------------------------------------------------------------------------


def can_manage_lab(user_id: str, user_roles: Iterable[str], lab: Mapping[str, Any] | None) -> bool:
    """Admin, or the professor named in the lab's primary ``professorId``."""
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if has_role(user_roles, Role.PROFESSOR):
        return lab is not None and _field(lab, "professorId") == user_id
    return False


def can_view_lab(user_id: str, user_roles: Iterable[str], lab: Mapping[str, Any] | None) -> bool:
    """Admin, the primary professor, or a listed lab assistant.

    Only the primary ``professorId`` is consulted for professors; a
    co-owner listed solely in ``professorIds`` cannot view through this
    guard.  Students never view lab records directly.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if lab is None:
        return False
    if has_role(user_roles, Role.PROFESSOR) and _field(lab, "professorId") == user_id:
        return True
    if has_role(user_roles, Role.LAB_ASSISTANT):
        return _is_assistant_of(user_id, lab)
    return False


def can_modify_lab(user_id: str, user_roles: Iterable[str], lab: Mapping[str, Any] | None) -> bool:
    """Admin, or a professor named by ``professorId`` or a list ``professorIds``.

    ``professorIds`` only counts when it is stored as a list; a
    comma-joined string is not normalized here.  Lab assistants can never
    modify a lab.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if lab is None or not has_role(user_roles, Role.PROFESSOR):
        return False
    if _field(lab, "professorId") == user_id:
        return True
    professor_ids = _field(lab, "professorIds")
    return isinstance(professor_ids, (list, tuple)) and user_id in professor_ids


def can_add_user_to_lab(
    user_id: str,
    user_roles: Iterable[str],
    lab: Mapping[str, Any] | None,
    role_to_add: str | None = None,
) -> bool:
    """Admin, or the lab's primary professor adding a LabAssistant/Student.

    Only ``professorId`` is checked; ``professorIds`` co-owners are denied.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if lab is None or not has_role(user_roles, Role.PROFESSOR):
        return False
    if _field(lab, "professorId") != user_id:
        return False
    return not role_to_add or role_to_add in PROFESSOR_MANAGEABLE_ROLES


def can_remove_user_from_lab(
    user_id: str,
    user_roles: Iterable[str],
    lab: Mapping[str, Any] | None,
    role_to_remove: str | None = None,
) -> bool:
    """Admin, or any of the lab's professors removing a LabAssistant/Student."""
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if lab is None or not has_role(user_roles, Role.PROFESSOR):
        return False
    if not _is_professor_of(user_id, lab):
        return False
    return not role_to_remove or role_to_remove in PROFESSOR_MANAGEABLE_ROLES


# ---------------------------------------------------------------------------
# Job guards
# ---------------------------------------------------------------------------


def can_view_job(user_id: str, user_roles: Iterable[str], job: Mapping[str, Any] | None) -> bool:
    """Decide whether the caller may see *job*.

    Order of checks: Admin; job creator; professor (direct ``professorId``,
    then the embedded ``lab`` snapshot); lab assistant (embedded ``lab``
    only); student (any job).  Professors and lab assistants are denied
    when the job carries no lab snapshot to prove the association.
    """
    user_roles = coerce_roles(user_roles)
    job_id = _record_id(job)

    if has_role(user_roles, Role.ADMIN):
        return True
    if job is None:
        return False

    if _field(job, "createdBy") == user_id:
        logger.debug("User %s created job %s - allowing view", user_id, job_id)
        return True

    if has_role(user_roles, Role.PROFESSOR):
        if _field(job, "professorId") == user_id:
            return True
        lab = _embedded_lab(job)
        if lab is None:
            logger.debug("No lab info for job %s, professor %s denied view", job_id, user_id)
            return False
        return _is_professor_of(user_id, lab)

    if has_role(user_roles, Role.LAB_ASSISTANT):
        lab = _embedded_lab(job)
        if lab is None:
            logger.debug("No lab info for job %s, lab assistant %s denied view", job_id, user_id)
            return False
        return _is_assistant_of(user_id, lab)

    if has_role(user_roles, Role.STUDENT):
        return True

    logger.debug("User %s with roles %s cannot view job %s", user_id, user_roles, job_id)
    return False


def can_create_job(
    user_id: str,
    user_roles: Iterable[str],
    lab_id: str | None,
    lab: Mapping[str, Any] | None = None,
) -> bool:
    """Decide whether the caller may post a job for *lab_id*.

    With a *lab* snapshot, professors must be its primary ``professorId``
    and lab assistants must be listed in ``labAssistantIds``.  Without one
    both roles are allowed and the ownership check is left to the caller.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if has_role(user_roles, Role.PROFESSOR):
        if lab is not None:
            return _field(lab, "professorId") == user_id
        # TODO: deny here once every caller resolves the lab before asking.
        logger.debug("can_create_job without lab %s for professor %s", lab_id, user_id)
        return True
    if has_role(user_roles, Role.LAB_ASSISTANT):
        if lab is not None:
            return _is_assistant_of(user_id, lab)
        logger.debug("can_create_job without lab %s for lab assistant %s", lab_id, user_id)
        return True
    return False


def can_manage_job(
    user_id: str,
    user_roles: Iterable[str],
    job: Mapping[str, Any] | None,
    lab: Mapping[str, Any] | None = None,
) -> bool:
    """Decide whether the caller may update or delete *job*.

    A supplied *lab* takes precedence over the job's embedded ``lab``
    snapshot; with neither, professors and lab assistants who are not the
    creator are denied.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if job is None:
        return False
    if _field(job, "createdBy") == user_id:
        return True

    if has_role(user_roles, Role.PROFESSOR):
        if _field(job, "professorId") == user_id:
            return True
        resolved = lab if lab is not None else _embedded_lab(job)
        if resolved is None:
            logger.debug("No lab info for job %s, professor %s denied management", _record_id(job), user_id)
            return False
        return _is_professor_of(user_id, resolved)

    if has_role(user_roles, Role.LAB_ASSISTANT):
        resolved = lab if lab is not None else _embedded_lab(job)
        if resolved is None:
            logger.debug(
                "No lab info for job %s, lab assistant %s denied management", _record_id(job), user_id
            )
            return False
        return _is_assistant_of(user_id, resolved)

    return False


def can_apply_to_job(user_id: str, user_roles: Iterable[str], job: Mapping[str, Any] | None) -> bool:
    """Students may apply to any job whose status is ``OPEN`` (any case).

    Duplicate-application prevention is the caller's job.  Admin passes
    like every other guard; the route in front of it is Student-only.
    """
    user_roles = coerce_roles(user_roles)
    if has_role(user_roles, Role.ADMIN):
        return True
    if not has_role(user_roles, Role.STUDENT):
        return False
    status = _field(job, "status")
    return isinstance(status, str) and status.upper() == "OPEN"
