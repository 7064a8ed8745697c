"""Unit tests for the static workflow edge tables and role permissions."""

from __future__ import annotations

import pytest

from constructos.models import EstimateStatus
from constructos.workflow.permissions import ESTIMATING_PERMISSIONS, RolePermissionChecker
from constructos.workflow.transitions import (
    ESTIMATE_TRANSITIONS,
    EntityType,
    allowed_transitions,
    find_transition,
)


class TestEstimateEdges:
    def test_draft_to_sent_is_not_an_edge(self):
        assert find_transition(EntityType.ESTIMATE, "draft", "sent") is None

    def test_ready_to_send_requires_send_permission_and_checks(self):
        edge = find_transition("estimate", "internal_review", "ready_to_send")

        assert edge is not None
        assert edge.requires_permission == "estimating.send"
        assert edge.requires_validation == (
            "has_totals",
            "has_at_least_one_version",
            "has_layout_or_default",
        )

    def test_allowed_from_draft(self):
        assert allowed_transitions("draft", EntityType.ESTIMATE) == ["internal_review", "archived"]

    def test_none_status_reads_as_draft(self):
        assert allowed_transitions(None, "estimate") == allowed_transitions("draft", "estimate")

    def test_enum_status_accepted(self):
        assert allowed_transitions(EstimateStatus.ACCEPTED, "estimate") == ["won", "lost"]

    @pytest.mark.parametrize("status", ["won", "archived"])
    def test_terminal_statuses_have_no_exits(self, status):
        assert allowed_transitions(status, "estimate") == []

    def test_every_edge_uses_known_statuses(self):
        known = {s.value for s in EstimateStatus}
        for edge in ESTIMATE_TRANSITIONS:
            assert edge.from_status in known
            assert edge.to_status in known


class TestVariationEdges:
    def test_sent_requires_lines_and_title(self):
        edge = find_transition(EntityType.VARIATION, "internal_review", "sent")

        assert edge.requires_permission == "estimating.send"
        assert set(edge.requires_validation) == {"has_lines", "has_title"}

    def test_allowed_from_sent(self):
        assert allowed_transitions("sent", EntityType.VARIATION) == [
            "approved",
            "rejected",
            "withdrawn",
        ]

    def test_withdraw_requires_write(self):
        edge = find_transition(EntityType.VARIATION, "sent", "withdrawn")

        assert edge.requires_permission == "estimating.write"


class TestRolePermissionChecker:
    @pytest.mark.parametrize("role", ["superadmin", "admin"])
    def test_admins_hold_everything(self, role):
        checker = RolePermissionChecker(role)

        assert all(checker.has_permission(p) for p in ESTIMATING_PERMISSIONS)

    def test_manager_can_send_and_convert_but_not_configure(self):
        checker = RolePermissionChecker("manager")

        assert checker.has_permission("estimating.send")
        assert checker.has_permission("estimating.convert")
        assert not checker.has_permission("estimating.configure_rates")

    def test_user_cannot_send(self):
        checker = RolePermissionChecker("user")

        assert checker.has_permission("estimating.write")
        assert not checker.has_permission("estimating.send")

    @pytest.mark.parametrize("role", [None, "", "owner", "  "])
    def test_unknown_or_missing_role_is_user(self, role):
        assert RolePermissionChecker(role).role == "user"

    def test_role_is_case_insensitive(self):
        assert RolePermissionChecker("Manager").role == "manager"
