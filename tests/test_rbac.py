"""Tests for the role-based access control guards.

Covers role primitives, the permission table, association-field
normalization, and every entity guard including its documented quirks.
"""

from __future__ import annotations

import pytest

from labboard.rbac import (
    RESOURCE_PERMISSIONS,
    ROLE_HIERARCHY,
    Role,
    can_add_user_to_lab,
    can_apply_to_job,
    can_create_job,
    can_manage_job,
    can_manage_lab,
    can_modify_lab,
    can_remove_user_from_lab,
    can_view_job,
    can_view_lab,
    has_any_role,
    has_permission,
    has_role,
    normalize_ids,
    roles_from_claim,
)

UID = "user-1"

LAB_L1 = {
    "id": "L1",
    "professorId": "P1",
    "professorIds": ["P1", "P2"],
    "labAssistantIds": ["A1"],
}

# Every guard, called with a positional entity; used for the universal properties.
GUARD_CALLS = [
    lambda uid, roles, e: can_view_lab(uid, roles, e),
    lambda uid, roles, e: can_manage_lab(uid, roles, e),
    lambda uid, roles, e: can_modify_lab(uid, roles, e),
    lambda uid, roles, e: can_add_user_to_lab(uid, roles, e, "Professor"),
    lambda uid, roles, e: can_remove_user_from_lab(uid, roles, e, "Admin"),
    lambda uid, roles, e: can_view_job(uid, roles, e),
    lambda uid, roles, e: can_create_job(uid, roles, "L-other", e),
    lambda uid, roles, e: can_manage_job(uid, roles, e),
    lambda uid, roles, e: can_apply_to_job(uid, roles, e),
]

ENTITIES = [
    None,
    {},
    {"professorId": "someone-else", "status": "CLOSED"},
    {"createdBy": "x", "professorId": "y", "lab": {"professorId": "z"}},
    LAB_L1,
]


# ---------------------------------------------------------------------------
# Unit tests: roles and the permission table
# ---------------------------------------------------------------------------


class TestRoleEnum:
    def test_values_are_group_names(self):
        assert {r.value for r in Role} == {"Admin", "Professor", "LabAssistant", "Student"}

    def test_role_is_strenum(self):
        assert Role.LAB_ASSISTANT == "LabAssistant"
        assert f"{Role.ADMIN}" == "Admin"

    def test_hierarchy_is_informational(self):
        assert Role.STUDENT in ROLE_HIERARCHY[Role.ADMIN]
        # Exact membership: holding Admin does not make you a Student.
        assert has_role(["Admin"], Role.STUDENT) is False


class TestRolePrimitives:
    def test_has_role_exact(self):
        assert has_role(["Professor"], "Professor") is True

    def test_has_role_case_sensitive(self):
        assert has_role(["professor"], "Professor") is False

    def test_has_any_role(self):
        assert has_any_role(["Student", "LabAssistant"], ["Admin", "LabAssistant"]) is True
        assert has_any_role(["Student"], ["Admin", "Professor"]) is False
        assert has_any_role([], ["Admin"]) is False

    def test_string_roles_are_not_substring_matched(self):
        assert has_role("Administrators", "Admin") is False
        assert has_role("Professor,Admin", "Admin") is True
        assert has_any_role("LabAssistants", ["LabAssistant"]) is False

    def test_none_and_generator_roles(self):
        assert has_role(None, "Admin") is False
        assert has_any_role(None, ["Student"]) is False
        assert has_role((r for r in ["Student"]), "Student") is True
        assert has_permission(None, "Job", "read") is False
        assert has_permission("Student", "Job", "apply") is True


class TestHasPermission:
    def test_professor_can_add_user_to_lab(self):
        assert has_permission(["Professor"], "Lab", "addUser") is True

    def test_professor_cannot_delete_lab(self):
        assert has_permission(["Professor"], "Lab", "delete") is False

    def test_student_can_apply_but_not_create(self):
        assert has_permission(["Student"], "Job", "apply") is True
        assert has_permission(["Student"], "Job", "create") is False

    def test_any_role_in_set_suffices(self):
        assert has_permission(["Student", "LabAssistant"], "Job", "delete") is True

    def test_unknown_resource_or_role(self):
        assert has_permission(["Admin"], "Spaceship", "read") is False
        assert has_permission(["Janitor"], "Lab", "read") is False

    def test_table_shape(self):
        assert RESOURCE_PERMISSIONS["Lab"][Role.STUDENT] == frozenset()
        assert RESOURCE_PERMISSIONS["User"][Role.STUDENT] == frozenset({"read"})


# ---------------------------------------------------------------------------
# Unit tests: normalization
# ---------------------------------------------------------------------------


class TestNormalizeIds:
    def test_list_and_string_equivalent(self):
        assert normalize_ids(["a", "b"]) == normalize_ids("a,b") == ["a", "b"]

    def test_none_is_empty(self):
        assert normalize_ids(None) == []

    def test_single_string(self):
        assert normalize_ids("a") == ["a"]

    def test_no_trimming(self):
        assert normalize_ids("a, b") == ["a", " b"]

    def test_tuple(self):
        assert normalize_ids(("a", "b")) == ["a", "b"]

    @pytest.mark.parametrize("value", [42, {"a": 1}, {"a", "b"}, 3.5])
    def test_other_types_are_empty(self, value):
        assert normalize_ids(value) == []

    def test_roles_from_claim(self):
        assert roles_from_claim("Professor,LabAssistant") == ["Professor", "LabAssistant"]
        assert roles_from_claim(None) == []


# ---------------------------------------------------------------------------
# Unit tests: universal properties
# ---------------------------------------------------------------------------


class TestAdminUniversality:
    @pytest.mark.parametrize("guard", GUARD_CALLS)
    @pytest.mark.parametrize("entity", ENTITIES)
    def test_admin_never_denied(self, guard, entity):
        assert guard("anyone", ["Student", "Admin"], entity) is True


class TestGuardsArePure:
    @pytest.mark.parametrize("guard", GUARD_CALLS)
    @pytest.mark.parametrize("roles", [["Professor"], ["LabAssistant"], ["Student"], []])
    def test_repeat_calls_agree(self, guard, roles):
        for entity in ENTITIES:
            first = guard("P1", roles, entity)
            assert guard("P1", roles, entity) is first

    @pytest.mark.parametrize("guard", GUARD_CALLS)
    def test_missing_record_denies_non_admin(self, guard):
        for roles in (["Professor"], ["LabAssistant"], ["Student"]):
            if guard is GUARD_CALLS[6]:
                continue  # can_create_job treats a missing lab as "not resolved"
            assert guard("P1", roles, None) is False

    @pytest.mark.parametrize("guard", GUARD_CALLS)
    def test_no_roles_always_denied(self, guard):
        for entity in ENTITIES:
            assert guard("P1", [], entity) is False

    @pytest.mark.parametrize("guard", GUARD_CALLS)
    @pytest.mark.parametrize("roles", [None, "", 7, {"Admin": True}])
    def test_unusable_roles_deny_without_raising(self, guard, roles):
        for entity in ENTITIES:
            assert guard("P1", roles, entity) is False

    @pytest.mark.parametrize("guard", GUARD_CALLS)
    def test_comma_joined_claim_string_is_split(self, guard):
        for entity in ENTITIES:
            assert guard("anyone", "Student,Admin", entity) is True


# ---------------------------------------------------------------------------
# Unit tests: lab guards
# ---------------------------------------------------------------------------


class TestCanViewLab:
    def test_primary_professor(self):
        assert can_view_lab("P1", ["Professor"], LAB_L1) is True

    def test_co_professor_listed_only_in_array_is_denied(self):
        assert can_view_lab("P2", ["Professor"], LAB_L1) is False

    def test_lab_assistant_listed(self):
        assert can_view_lab("A1", ["LabAssistant"], LAB_L1) is True

    def test_lab_assistant_from_comma_string(self):
        lab = {"professorId": "P3", "labAssistantIds": "A2,A3"}
        assert can_view_lab("A3", ["LabAssistant"], lab) is True
        assert can_view_lab("A9", ["LabAssistant"], lab) is False

    def test_student_denied(self):
        assert can_view_lab("P1", ["Student"], LAB_L1) is False

    def test_professor_who_is_also_assistant(self):
        assert can_view_lab("A1", ["Professor", "LabAssistant"], LAB_L1) is True


class TestCanManageLab:
    def test_primary_professor_only(self):
        assert can_manage_lab("P1", ["Professor"], LAB_L1) is True
        assert can_manage_lab("P2", ["Professor"], LAB_L1) is False

    def test_assistant_denied(self):
        assert can_manage_lab("A1", ["LabAssistant"], LAB_L1) is False


class TestCanModifyLab:
    def test_primary_professor(self):
        assert can_modify_lab(UID, ["Professor"], {"professorId": UID}) is True

    def test_co_professor_in_list(self):
        assert can_modify_lab("P2", ["Professor"], LAB_L1) is True

    def test_co_professor_in_comma_string_is_denied(self):
        lab = {"professorId": "P1", "professorIds": "P1,P2"}
        assert can_modify_lab("P2", ["Professor"], lab) is False

    def test_lab_assistant_never_modifies(self):
        assert can_modify_lab("A1", ["LabAssistant"], LAB_L1) is False

    def test_unrelated_professor(self):
        assert can_modify_lab("P9", ["Professor"], LAB_L1) is False


class TestCanAddUserToLab:
    def test_professor_adds_student_or_assistant(self):
        assert can_add_user_to_lab(UID, ["Professor"], {"professorId": UID}, "Student") is True
        assert can_add_user_to_lab(UID, ["Professor"], {"professorId": UID}, "LabAssistant") is True

    def test_professor_with_no_role(self):
        assert can_add_user_to_lab(UID, ["Professor"], {"professorId": UID}) is True

    def test_professor_cannot_grant_professor_or_admin(self):
        assert can_add_user_to_lab(UID, ["Professor"], {"professorId": UID}, "Professor") is False
        assert can_add_user_to_lab(UID, ["Professor"], {"professorId": UID}, "Admin") is False

    def test_co_professor_in_array_is_denied(self):
        assert can_add_user_to_lab("P2", ["Professor"], LAB_L1, "Student") is False

    def test_lab_assistant_denied(self):
        assert can_add_user_to_lab("A1", ["LabAssistant"], LAB_L1, "Student") is False


class TestCanRemoveUserFromLab:
    def test_co_professor_in_array(self):
        lab = {"professorId": "other", "professorIds": [UID]}
        assert can_remove_user_from_lab(UID, ["Professor"], lab, "Student") is True

    def test_co_professor_in_comma_string(self):
        lab = {"professorId": "other", "professorIds": f"x,{UID}"}
        assert can_remove_user_from_lab(UID, ["Professor"], lab, "LabAssistant") is True

    def test_cannot_remove_professor(self):
        assert can_remove_user_from_lab("P1", ["Professor"], LAB_L1, "Professor") is False

    def test_null_role_allowed(self):
        assert can_remove_user_from_lab("P1", ["Professor"], LAB_L1, None) is True

    def test_unrelated_professor(self):
        assert can_remove_user_from_lab("P9", ["Professor"], LAB_L1, "Student") is False


# ---------------------------------------------------------------------------
# Unit tests: job guards
# ---------------------------------------------------------------------------


class TestCanViewJob:
    def test_professor_without_lab_info_denied(self):
        job = {"createdBy": "other", "professorId": "other"}
        assert can_view_job(UID, ["Professor"], job) is False

    def test_student_sees_any_job(self):
        assert can_view_job(UID, ["Student"], {"createdBy": "x", "professorId": "y"}) is True

    def test_creator_always_sees(self):
        assert can_view_job("A9", ["LabAssistant"], {"createdBy": "A9"}) is True

    def test_professor_direct(self):
        assert can_view_job("P1", ["Professor"], {"professorId": "P1"}) is True

    def test_professor_via_lab_array(self):
        job = {"createdBy": "x", "professorId": "y", "lab": LAB_L1}
        assert can_view_job("P2", ["Professor"], job) is True

    def test_professor_via_lab_comma_string(self):
        job = {"professorId": "y", "lab": {"professorId": "z", "professorIds": "z,P7"}}
        assert can_view_job("P7", ["Professor"], job) is True

    def test_professor_not_in_lab(self):
        job = {"professorId": "y", "lab": LAB_L1}
        assert can_view_job("P9", ["Professor"], job) is False

    def test_assistant_needs_lab(self):
        assert can_view_job("A1", ["LabAssistant"], {"professorId": "P1"}) is False
        assert can_view_job("A1", ["LabAssistant"], {"professorId": "P1", "lab": LAB_L1}) is True

    def test_professor_branch_wins_over_student(self):
        job = {"createdBy": "x", "professorId": "y"}
        assert can_view_job(UID, ["Professor", "Student"], job) is False


class TestCanCreateJob:
    def test_professor_with_lab(self):
        assert can_create_job("P1", ["Professor"], "L1", LAB_L1) is True
        assert can_create_job("P2", ["Professor"], "L1", LAB_L1) is False

    def test_assistant_with_lab(self):
        assert can_create_job("A1", ["LabAssistant"], "L1", LAB_L1) is True
        assert can_create_job("A9", ["LabAssistant"], "L1", LAB_L1) is False

    def test_permissive_without_lab(self):
        assert can_create_job("P9", ["Professor"], "L1") is True
        assert can_create_job("A9", ["LabAssistant"], "L1") is True

    def test_student_denied(self):
        assert can_create_job("S1", ["Student"], "L1") is False
        assert can_create_job("S1", ["Student"], "L1", LAB_L1) is False


class TestCanManageJob:
    def test_creator(self):
        assert can_manage_job("S1", ["Student"], {"createdBy": "S1"}) is True

    def test_professor_direct(self):
        assert can_manage_job("P1", ["Professor"], {"professorId": "P1"}) is True

    def test_professor_via_supplied_lab(self):
        assert can_manage_job("P2", ["Professor"], {"professorId": "x"}, LAB_L1) is True

    def test_supplied_lab_takes_precedence_over_embedded(self):
        job = {"professorId": "x", "lab": {"professorIds": ["P9"]}}
        assert can_manage_job("P9", ["Professor"], job, LAB_L1) is False
        assert can_manage_job("P9", ["Professor"], job) is True

    def test_professor_without_lab_denied(self):
        assert can_manage_job("P9", ["Professor"], {"professorId": "x"}) is False

    def test_assistant_via_supplied_or_embedded_lab(self):
        assert can_manage_job("A1", ["LabAssistant"], {"createdBy": "x"}, LAB_L1) is True
        assert can_manage_job("A1", ["LabAssistant"], {"createdBy": "x", "lab": LAB_L1}) is True
        assert can_manage_job("A1", ["LabAssistant"], {"createdBy": "x"}) is False

    def test_student_not_creator_denied(self):
        assert can_manage_job("S1", ["Student"], {"createdBy": "x"}, LAB_L1) is False


class TestCanApplyToJob:
    def test_open_any_case(self):
        assert can_apply_to_job(UID, ["Student"], {"status": "open"}) is True
        assert can_apply_to_job(UID, ["Student"], {"status": "OPEN"}) is True

    def test_closed(self):
        assert can_apply_to_job(UID, ["Student"], {"status": "Closed"}) is False

    def test_missing_status(self):
        assert can_apply_to_job(UID, ["Student"], {}) is False

    def test_non_student(self):
        assert can_apply_to_job(UID, ["Professor"], {"status": "OPEN"}) is False
        assert can_apply_to_job(UID, ["LabAssistant"], {"status": "OPEN"}) is False


# ---------------------------------------------------------------------------
# Scenario: multi-professor lab
# ---------------------------------------------------------------------------


class TestMultiProfessorLab:
    """P2 co-owns L1 through professorIds only."""

    def test_p2_cannot_view_lab(self):
        assert can_view_lab("P2", ["Professor"], LAB_L1) is False

    def test_p2_can_modify_lab(self):
        assert can_modify_lab("P2", ["Professor"], LAB_L1) is True

    def test_p2_cannot_add_but_can_remove(self):
        assert can_add_user_to_lab("P2", ["Professor"], LAB_L1, "Student") is False
        assert can_remove_user_from_lab("P2", ["Professor"], LAB_L1, "Student") is True

    def test_p2_can_manage_jobs_in_lab(self):
        assert can_manage_job("P2", ["Professor"], {"createdBy": "P1", "professorId": "P1"}, LAB_L1)
