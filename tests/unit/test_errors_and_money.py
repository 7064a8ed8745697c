"""Unit tests for the error taxonomy, money helpers and token redaction."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from constructos.errors import (
    AlreadyConvertedError,
    IllegalTransitionError,
    PartialConversionError,
    UnauthorizedError,
    ValidationFailedError,
)
from constructos.reporting.audit_export import redact_token
from constructos.utils.money import jsonable, quantize_money, to_decimal, vat_on


class TestErrors:
    def test_illegal_transition_message(self):
        err = IllegalTransitionError("draft", "sent")

        assert err.kind == "illegal_transition"
        assert str(err) == "Transition from draft to sent is not allowed"

    def test_unauthorized_names_permission(self):
        err = UnauthorizedError("estimating.send")

        assert err.to_dict() == {"kind": "unauthorized", "message": "Permission required: estimating.send"}

    def test_validation_failed_lists_every_error(self):
        err = ValidationFailedError(["Total missing", "No version"])

        assert err.errors == ["Total missing", "No version"]
        assert err.message == "Validation failed: Total missing, No version"
        assert err.to_dict()["errors"] == ["Total missing", "No version"]

    def test_partial_conversion_carries_project(self):
        project_id = uuid4()
        err = PartialConversionError(uuid4(), project_id, "work_orders", "boom")

        data = err.to_dict()
        assert data["kind"] == "partial_conversion"
        assert data["project_id"] == str(project_id)
        assert data["stage"] == "work_orders"

    def test_already_converted_kind(self):
        assert AlreadyConvertedError(uuid4(), uuid4()).kind == "already_converted"


class TestMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, "0"), ("", "0"), ("12.50", "12.50"), (3, "3"), (1.5, "1.5"), ("abc", "0")],
    )
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == Decimal(expected)

    def test_quantize_half_up(self):
        assert quantize_money(Decimal("2.345")) == Decimal("2.35")
        assert quantize_money(Decimal("2.344")) == Decimal("2.34")

    def test_vat_on(self):
        assert vat_on(Decimal("150.00"), Decimal("20")) == Decimal("30.00")
        assert vat_on(Decimal("10.05"), Decimal("13.5")) == Decimal("1.36")

    def test_jsonable_nested(self):
        ident = uuid4()

        data = jsonable({"id": ident, "lines": [{"cost": Decimal("1.10")}], "ok": True})

        assert data == {"id": str(ident), "lines": [{"cost": "1.10"}], "ok": True}


class TestRedactToken:
    def test_keeps_first_six_characters(self):
        assert redact_token("abcdef123456") == "abcdef***"

    def test_exactly_six_characters(self):
        assert redact_token("abcdef") == "abcdef***"

    @pytest.mark.parametrize("token", [None, "", "abc12"])
    def test_short_or_missing_token_fully_redacted(self, token):
        assert redact_token(token) == "***"
