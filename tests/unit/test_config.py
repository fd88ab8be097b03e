"""Unit tests for callback settings loading."""

from typing import Any

import boto3
import pytest
from moto import mock_aws
from pydantic import ValidationError

from paygate.config import CallbackSettings, get_settings, load_settings
from paygate.services.ssm_service import SSMServiceError


class TestCallbackSettings:
    """Validation of settings values."""

    def test_defaults(self) -> None:
        settings = CallbackSettings(payment_secret="abc")
        assert settings.timestamp_validity == 300
        assert settings.lock_duration == 30
        assert settings.callback_ips == ()
        assert settings.development_mode is True

    def test_ip_list_is_split_and_trimmed(self) -> None:
        settings = CallbackSettings(payment_secret="abc", callback_ips=" 1.1.1.1, ,2.2.2.2 ")
        assert settings.callback_ips == ("1.1.1.1", "2.2.2.2")

    def test_production_disables_development_mode(self) -> None:
        settings = CallbackSettings(payment_secret="abc", environment="production")
        assert settings.development_mode is False

    @pytest.mark.parametrize(
        "overrides",
        [{"payment_secret": ""}, {"timestamp_validity": 0}, {"lock_duration": -1}],
    )
    def test_invalid_values_rejected(self, overrides: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            CallbackSettings(**{"payment_secret": "abc", **overrides})

    def test_secret_not_in_repr(self) -> None:
        assert "abc-secret" not in repr(CallbackSettings(payment_secret="abc-secret"))


class TestLoadSettings:
    """Environment and SSM sources."""

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAYMENT_SECRET", "from-env")
        monkeypatch.setenv("PAYMENT_CALLBACK_IPS", "1.1.1.1,2.2.2.2")
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("PAYMENT_TIMESTAMP_VALIDITY", "60")
        monkeypatch.setenv("PAYMENT_LOCK_DURATION", "10")

        settings = load_settings()

        assert settings.payment_secret == "from-env"
        assert settings.callback_ips == ("1.1.1.1", "2.2.2.2")
        assert settings.development_mode is False
        assert settings.timestamp_validity == 60
        assert settings.lock_duration == 10

    @pytest.mark.parametrize(
        ("name", "value"),
        [("PAYMENT_TIMESTAMP_VALIDITY", "five minutes"), ("PAYMENT_LOCK_DURATION", "0")],
    )
    def test_bad_numeric_environment_is_validation_error(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        monkeypatch.setenv("PAYMENT_SECRET", "from-env")
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            load_settings()

    def test_falls_back_to_ssm(self, monkeypatch: pytest.MonkeyPatch, aws_credentials: None) -> None:
        monkeypatch.delenv("PAYMENT_SECRET", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "staging")
        with mock_aws():
            boto3.client("ssm", region_name="eu-west-1").put_parameter(
                Name="/paygate/staging/payment/secret",
                Value="from-ssm",
                Type="SecureString",
            )
            assert load_settings().payment_secret == "from-ssm"

    def test_missing_ssm_parameter_raises(
        self, monkeypatch: pytest.MonkeyPatch, aws_credentials: None
    ) -> None:
        monkeypatch.delenv("PAYMENT_SECRET", raising=False)
        with mock_aws():
            with pytest.raises(SSMServiceError, match="not found"):
                load_settings()

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()
