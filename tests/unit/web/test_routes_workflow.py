"""Tests for constructos.web.routes.workflow - Workflow transition routes."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from constructos.errors import (
    ConcurrentModificationError,
    IllegalTransitionError,
    UnauthorizedError,
    ValidationFailedError,
)
from constructos.web.errors import register_error_handlers
from constructos.web.routes import workflow
from constructos.workflow.service import TransitionResult
from constructos.workflow.transitions import EntityType


@pytest.fixture
def app():
    """Create test FastAPI app with workflow router."""
    test_app = FastAPI()
    test_app.include_router(workflow.router)
    register_error_handlers(test_app)
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def mock_db_session():
    """Mock database session with async context manager."""
    session = AsyncMock()

    async_cm = AsyncMock()
    async_cm.__aenter__.return_value = session
    async_cm.__aexit__.return_value = None

    return async_cm


def _guard_returning(**methods) -> MagicMock:
    guard = MagicMock()
    for name, value in methods.items():
        setattr(guard, name, AsyncMock(**value))
    return guard


class TestAllowedTransitions:
    """Tests for GET /api/estimating/workflow/{entity_type}/allowed."""

    def test_estimate_from_internal_review(self, client):
        response = client.get(
            "/api/estimating/workflow/estimate/allowed", params={"status": "internal_review"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["entity_type"] == "estimate"
        assert data["allowed"] == ["draft", "ready_to_send", "archived"]

    def test_defaults_to_draft(self, client):
        response = client.get("/api/estimating/workflow/variation/allowed")

        assert response.json()["allowed"] == ["internal_review"]

    def test_unknown_entity_type_rejected(self, client):
        response = client.get("/api/estimating/workflow/invoice/allowed")

        assert response.status_code == 422


class TestEstimateTransition:
    """Tests for POST /api/estimating/estimates/{id}/transition."""

    @patch("constructos.web.routes.workflow.WorkflowGuard")
    @patch("constructos.web.routes.workflow.get_session")
    def test_success(self, mock_get_session, mock_guard_cls, client, mock_db_session):
        estimate_id = uuid4()
        mock_get_session.return_value = mock_db_session
        mock_guard_cls.return_value = _guard_returning(
            transition_estimate={
                "return_value": TransitionResult(
                    EntityType.ESTIMATE, estimate_id, "draft", "internal_review", 1
                )
            }
        )

        response = client.post(
            f"/api/estimating/estimates/{estimate_id}/transition",
            json={"to_status": "internal_review", "note": "ready for checking"},
            headers={"X-Role": "manager", "X-User": "pat"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["from_status"] == "draft"
        assert data["to_status"] == "internal_review"
        assert data["revision"] == 1

        _, tenant_id, permissions = mock_guard_cls.call_args.args
        assert tenant_id == "tenant-test"
        assert permissions.role == "manager"
        assert mock_guard_cls.call_args.kwargs["actor"] == "pat"
        mock_guard_cls.return_value.transition_estimate.assert_awaited_once_with(
            estimate_id, "internal_review", "ready for checking"
        )

    @pytest.mark.parametrize(
        "error,status_code,kind",
        [
            (IllegalTransitionError("draft", "sent"), 409, "illegal_transition"),
            (UnauthorizedError("estimating.send"), 403, "unauthorized"),
            (ValidationFailedError(["Estimate must have a total"]), 422, "validation_failed"),
            (ConcurrentModificationError("Estimate", "e1", 3), 409, "conflict"),
        ],
    )
    @patch("constructos.web.routes.workflow.WorkflowGuard")
    @patch("constructos.web.routes.workflow.get_session")
    def test_errors_mapped_to_status(
        self, mock_get_session, mock_guard_cls, error, status_code, kind, client, mock_db_session
    ):
        mock_get_session.return_value = mock_db_session
        mock_guard_cls.return_value = _guard_returning(transition_estimate={"side_effect": error})

        response = client.post(
            f"/api/estimating/estimates/{uuid4()}/transition", json={"to_status": "sent"}
        )

        assert response.status_code == status_code
        assert response.json()["detail"]["kind"] == kind

    @patch("constructos.web.routes.workflow.WorkflowGuard")
    @patch("constructos.web.routes.workflow.get_session")
    def test_validation_errors_listed(self, mock_get_session, mock_guard_cls, client, mock_db_session):
        mock_get_session.return_value = mock_db_session
        mock_guard_cls.return_value = _guard_returning(
            transition_estimate={"side_effect": ValidationFailedError(["No total", "No version"])}
        )

        response = client.post(
            f"/api/estimating/estimates/{uuid4()}/transition", json={"to_status": "ready_to_send"}
        )

        assert response.json()["detail"]["errors"] == ["No total", "No version"]

    def test_missing_body_rejected(self, client):
        response = client.post(f"/api/estimating/estimates/{uuid4()}/transition", json={})

        assert response.status_code == 422


class TestVariationTransition:
    """Tests for POST /api/estimating/variations/{id}/transition."""

    @patch("constructos.web.routes.workflow.WorkflowGuard")
    @patch("constructos.web.routes.workflow.get_session")
    def test_default_role_and_actor(self, mock_get_session, mock_guard_cls, client, mock_db_session):
        variation_id = uuid4()
        mock_get_session.return_value = mock_db_session
        mock_guard_cls.return_value = _guard_returning(
            transition_variation={
                "return_value": TransitionResult(
                    EntityType.VARIATION, variation_id, "sent", "approved", 4
                )
            }
        )

        response = client.post(
            f"/api/estimating/variations/{variation_id}/transition", json={"to_status": "approved"}
        )

        assert response.status_code == 200
        assert response.json()["entity_type"] == "variation"
        _, _, permissions = mock_guard_cls.call_args.args
        assert permissions.role == "user"
        assert mock_guard_cls.call_args.kwargs["actor"] == "api"
