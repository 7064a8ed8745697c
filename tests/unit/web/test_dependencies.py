"""Tests for constructos.web.dependencies and error mapping."""

import pytest

from constructos.config import reset_config
from constructos.errors import EstimatingError, UnauthorizedError
from constructos.web.dependencies import (
    get_actor,
    get_permissions,
    get_tenant_id,
    require_permission,
)
from constructos.web.errors import STATUS_BY_KIND


def test_tenant_id_from_config():
    assert get_tenant_id() == "tenant-test"


def test_permissions_from_role_header():
    assert get_permissions("Manager").role == "manager"


def test_permissions_fall_back_to_configured_role(monkeypatch):
    monkeypatch.setenv("DEFAULT_ROLE", "admin")
    reset_config()

    assert get_permissions(None).role == "admin"


def test_unknown_role_downgraded_to_user():
    assert get_permissions("owner").role == "user"


def test_actor_defaults_to_api():
    assert get_actor(None) == "api"
    assert get_actor("sam") == "sam"


def test_require_permission():
    require_permission(get_permissions("admin"), "estimating.configure_rates")

    with pytest.raises(UnauthorizedError):
        require_permission(get_permissions("user"), "estimating.convert")


def test_every_error_kind_has_status():
    kinds = {cls.kind for cls in EstimatingError.__subclasses__()}

    assert kinds <= set(STATUS_BY_KIND)
