"""Tests for alert and delivery configuration."""

from collections.abc import Callable

import pytest

from logwarden.core.config import AlertConfig, CollectorIdentity, DeliveryConfig
from logwarden.core.errors import ConfigError

pytestmark = [pytest.mark.unit, pytest.mark.core, pytest.mark.tier(0)]


class TestCollectorIdentity:
    """Tests for CollectorIdentity."""

    @pytest.mark.tra("Config.Identity.EffectiveUserId")
    def test_effective_user_id_falls_back(self) -> None:
        """The user id falls back to phone number, then email."""
        assert CollectorIdentity(user_id="u").effective_user_id == "u"
        identity = CollectorIdentity(phone_number="+1", email="a@b")
        assert identity.effective_user_id == "+1"
        assert CollectorIdentity(email="a@b").effective_user_id == "a@b"
        assert CollectorIdentity().effective_user_id == ""

    @pytest.mark.tra("Config.Identity.ToDict")
    def test_to_dict_uses_camel_case(self) -> None:
        """Identity serializes with the collector's key names."""
        data = CollectorIdentity(user_id="u", team_id="t").to_dict()
        assert data["userId"] == "u"
        assert data["teamId"] == "t"
        assert data["role"] == "developer"


class TestAlertConfig:
    """Tests for AlertConfig defaults."""

    @pytest.mark.tra("Config.Alert.Defaults")
    def test_defaults(self) -> None:
        """Alerting is enabled with a five minute cooldown and no rules."""
        config = AlertConfig()
        assert config.enabled is True
        assert config.rules == ()
        assert config.cooldown_seconds == 300.0
        assert config.webhook_url is None


class TestDeliveryConfig:
    """Tests for DeliveryConfig."""

    @pytest.mark.tra("Config.Delivery.Defaults")
    def test_defaults(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """Defaults match the documented batching and backpressure values."""
        config = make_delivery_config()
        assert config.batch_size == 10
        assert config.batch_upload_interval_seconds == 30.0
        assert config.request_timeout_seconds == 30.0
        assert config.queue_capacity == 1000
        assert config.max_field_length == 10000

    @pytest.mark.tra("Config.Delivery.BatchUrl")
    def test_batch_url_strips_trailing_slash(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """The batch URL never contains a double slash."""
        config = make_delivery_config(endpoint="https://collector.test/api/")
        assert config.batch_url == "https://collector.test/api/logs/batch"

    @pytest.mark.tra("Config.Delivery.Validate.Ok")
    def test_validate_accepts_complete_config(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """A complete config validates without raising."""
        make_delivery_config().validate()

    @pytest.mark.tra("Config.Delivery.Validate.Errors")
    @pytest.mark.parametrize(
        ("overrides", "match"),
        [
            ({"endpoint": ""}, "endpoint is required"),
            ({"endpoint": "collector.test"}, "valid URL"),
            ({"api_key": ""}, "API key"),
            ({"identity": CollectorIdentity(display_name="x")}, "identity"),
            ({"batch_size": 0}, "batch_size"),
            ({"queue_capacity": 0}, "queue_capacity"),
            ({"batch_upload_interval_seconds": 0}, "batch_upload_interval"),
            ({"request_timeout_seconds": -1}, "request_timeout"),
        ],
    )
    def test_validate_rejects(
        self,
        make_delivery_config: Callable[..., DeliveryConfig],
        overrides: dict[str, object],
        match: str,
    ) -> None:
        """validate() raises ConfigError naming the first problem."""
        with pytest.raises(ConfigError, match=match):
            make_delivery_config(**overrides).validate()

    @pytest.mark.tra("Config.Delivery.Presets")
    def test_presets(self) -> None:
        """development() sends unbatched, production() batches twenty."""
        identity = CollectorIdentity(user_id="u")
        dev = DeliveryConfig.development("https://c.test", "k", identity)
        prod = DeliveryConfig.production("https://c.test", "k", identity)

        assert dev.enable_batching is False
        assert dev.batch_size == 1
        assert dev.environment == "development"
        assert prod.enable_batching is True
        assert prod.batch_size == 20
        assert prod.batch_upload_interval_seconds == 60.0

    @pytest.mark.tra("Config.Delivery.CopyWith")
    def test_copy_with(
        self, make_delivery_config: Callable[..., DeliveryConfig]
    ) -> None:
        """copy_with returns an updated copy."""
        config = make_delivery_config()
        assert config.copy_with(batch_size=3).batch_size == 3
        assert config.batch_size == 10
