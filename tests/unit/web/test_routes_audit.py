"""Tests for constructos.web.routes.audit - Audit bundle download."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from constructos.errors import NotFoundError
from constructos.web.errors import register_error_handlers
from constructos.web.routes import audit


@pytest.fixture
def app():
    test_app = FastAPI()
    test_app.include_router(audit.router)
    register_error_handlers(test_app)
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def mock_db_session():
    session = AsyncMock()

    async_cm = AsyncMock()
    async_cm.__aenter__.return_value = session
    async_cm.__aexit__.return_value = None

    return async_cm


@patch("constructos.web.routes.audit.export_audit_bundle")
@patch("constructos.web.routes.audit.get_session")
def test_download_is_attachment(mock_get_session, mock_export, client, mock_db_session):
    estimate_id = uuid4()
    mock_get_session.return_value = mock_db_session
    mock_export.return_value = ("audit-bundle-x-2026-01-01.json", b'{"estimate_id": "x"}')

    response = client.get(f"/api/estimating/estimates/{estimate_id}/audit-export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.headers["content-disposition"] == 'attachment; filename="audit-bundle-x-2026-01-01.json"'
    assert response.json() == {"estimate_id": "x"}
    assert mock_export.await_args.args[1:] == ("tenant-test", estimate_id)


@patch("constructos.web.routes.audit.export_audit_bundle")
@patch("constructos.web.routes.audit.get_session")
def test_unknown_estimate(mock_get_session, mock_export, client, mock_db_session):
    mock_get_session.return_value = mock_db_session
    mock_export.side_effect = NotFoundError("Estimate", "x")

    response = client.get(f"/api/estimating/estimates/{uuid4()}/audit-export")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"
