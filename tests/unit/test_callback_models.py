"""Unit tests for callback payload normalization and results."""

from typing import Any

import pytest
from pydantic import ValidationError

from paygate.models import CallbackPayload, CallbackResult, CallbackStatus


def _payload(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "order_no": "ORD-1",
        "trade_no": "T-1",
        "amount": "50.00",
        "status": "success",
        "timestamp": "1700000000",
        "sign": "abc",
        "nonce": "n",
    }
    data.update(overrides)
    return data


class TestCallbackPayload:
    """Parsing of JSON and form bodies into one shape."""

    def test_parses_form_style_strings(self) -> None:
        payload = CallbackPayload.model_validate(_payload())
        assert payload.status == CallbackStatus.SUCCESS
        assert payload.amount == "50.00"

    def test_keeps_json_integer_amount(self) -> None:
        payload = CallbackPayload.model_validate(_payload(amount=5000, timestamp=1700000000))
        assert payload.amount == 5000
        assert payload.signed_fields()["amount"] == "5000"
        assert payload.signed_fields()["timestamp"] == "1700000000"

    def test_whole_float_signed_without_fraction(self) -> None:
        payload = CallbackPayload.model_validate(_payload(amount=50.0))
        assert payload.signed_fields()["amount"] == "50"

    def test_fractional_json_timestamp_kept_as_signed(self) -> None:
        payload = CallbackPayload.model_validate(_payload(timestamp=1700000000.5))
        assert payload.timestamp == 1700000000.5
        assert payload.signed_fields()["timestamp"] == "1700000000.5"

    def test_whole_float_timestamp_signed_without_fraction(self) -> None:
        payload = CallbackPayload.model_validate(_payload(timestamp=1700000000.0))
        assert payload.signed_fields()["timestamp"] == "1700000000"

    @pytest.mark.parametrize("field", ["order_no", "trade_no", "amount", "status"])
    def test_required_fields(self, field: str) -> None:
        data = _payload()
        del data[field]
        with pytest.raises(ValidationError):
            CallbackPayload.model_validate(data)

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("order_no", "  "),
            ("amount", ""),
            ("amount", 0),
            ("amount", "fifty"),
            ("amount", True),
            ("status", "pending"),
        ],
    )
    def test_invalid_values(self, field: str, value: Any) -> None:
        with pytest.raises(ValidationError):
            CallbackPayload.model_validate(_payload(**{field: value}))

    def test_blank_optional_fields_become_none(self) -> None:
        payload = CallbackPayload.model_validate(_payload(sign="", nonce="", timestamp=""))
        assert payload.sign is None
        assert payload.nonce is None
        assert payload.timestamp is None
        assert payload.signed_fields()["nonce"] == ""

    def test_unknown_fields_ignored(self) -> None:
        payload = CallbackPayload.model_validate(_payload(extra_field="x"))
        assert "extra_field" not in payload.model_dump()


class TestCallbackResult:
    """Response body shape."""

    def test_ok_body(self) -> None:
        result = CallbackResult.ok("支付成功")
        assert result.status_code == 200
        assert result.body() == {"success": True, "message": "支付成功"}

    def test_fail_body(self) -> None:
        result = CallbackResult.fail(403, "签名验证失败")
        assert result.status_code == 403
        assert result.body() == {"success": False, "error": "签名验证失败"}
