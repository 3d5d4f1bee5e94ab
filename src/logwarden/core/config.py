"""Configuration objects for the alert engine and the delivery pipeline."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from logwarden.core.errors import ConfigError

if TYPE_CHECKING:
    from logwarden.core.models import AlertNotification, AlertRule


@dataclass(frozen=True)
class CollectorIdentity:
    """Who the shipped entries belong to.

    At least one of user_id, email or phone_number must be set for
    delivery to be accepted.
    """

    user_id: str | None = None
    email: str | None = None
    display_name: str | None = None
    team_id: str | None = None
    phone_number: str | None = None
    role: str = "developer"

    @property
    def effective_user_id(self) -> str:
        """User id sent in X-User-ID, falling back to phone then email."""
        return self.user_id or self.phone_number or self.email or ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.effective_user_id,
            "email": self.email,
            "displayName": self.display_name,
            "teamId": self.team_id,
            "phoneNumber": self.phone_number,
            "role": self.role,
        }


@dataclass(frozen=True)
class AlertConfig:
    """Alert engine settings.

    Attributes:
        enabled: When False the engine ignores every entry.
        rules: Rules to evaluate.
        cooldown_seconds: Minimum spacing between two alerts of one rule.
        on_alert: Optional callback invoked once per notification.
        webhook_url: Optional URL every notification is POSTed to.
        webhook_headers: Extra headers for the webhook request.
        webhook_timeout_seconds: Timeout for a single webhook request.
    """

    enabled: bool = True
    rules: tuple["AlertRule", ...] = ()
    cooldown_seconds: float = 300.0
    on_alert: Callable[["AlertNotification"], Any] | None = None
    webhook_url: str | None = None
    webhook_headers: dict[str, str] = field(default_factory=dict)
    webhook_timeout_seconds: float = 10.0

    def copy_with(self, **changes: Any) -> "AlertConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class DeliveryConfig:
    """Settings for shipping entries to the remote collector.

    Attributes:
        endpoint: Collector base URL; batches go to {endpoint}/logs/batch.
        api_key: Bearer token sent with every request.
        identity: User/team identity attached to requests and entries.
        enabled: When False, enqueue is a no-op.
        enable_batching: When False every entry is sent as soon as it is queued.
        batch_size: Entries per batch; reaching it triggers a send.
        batch_upload_interval_seconds: Period of the background flush timer.
        request_timeout_seconds: Upper bound on one collector request.
        queue_capacity: Pending entries kept before the oldest is dropped.
        max_field_length: Longer text fields are truncated before queuing.
        environment: Free-form label shipped in appInfo.
    """

    endpoint: str
    api_key: str
    identity: CollectorIdentity = field(default_factory=CollectorIdentity)
    enabled: bool = True
    enable_batching: bool = True
    batch_size: int = 10
    batch_upload_interval_seconds: float = 30.0
    request_timeout_seconds: float = 30.0
    queue_capacity: int = 1000
    max_field_length: int = 10000
    environment: str = "production"

    def __post_init__(self) -> None:
        # Trailing slash would produce "//logs/batch"
        object.__setattr__(self, "endpoint", self.endpoint.rstrip("/"))

    @property
    def batch_url(self) -> str:
        return f"{self.endpoint}/logs/batch"

    def validate(self) -> None:
        """Check the configuration.

        Raises:
            ConfigError: Describing the first problem found.
        """
        if not self.endpoint:
            raise ConfigError("API endpoint is required")
        if not self.endpoint.startswith("http"):
            raise ConfigError("API endpoint must be a valid URL")
        if not self.api_key:
            raise ConfigError("API key is required")
        if not (
            self.identity.user_id or self.identity.email or self.identity.phone_number
        ):
            raise ConfigError(
                "identity must have at least user_id, email, or phone_number"
            )
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be greater than 0")
        if self.queue_capacity <= 0:
            raise ConfigError("queue_capacity must be greater than 0")
        if self.batch_upload_interval_seconds <= 0:
            raise ConfigError("batch_upload_interval_seconds must be greater than 0")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("request_timeout_seconds must be greater than 0")

    def copy_with(self, **changes: Any) -> "DeliveryConfig":
        return replace(self, **changes)

    @classmethod
    def development(
        cls, endpoint: str, api_key: str, identity: CollectorIdentity
    ) -> "DeliveryConfig":
        """Immediate, unbatched delivery with a short timeout for debugging."""
        return cls(
            endpoint=endpoint,
            api_key=api_key,
            identity=identity,
            enable_batching=False,
            batch_size=1,
            batch_upload_interval_seconds=10.0,
            request_timeout_seconds=10.0,
            environment="development",
        )

    @classmethod
    def production(
        cls, endpoint: str, api_key: str, identity: CollectorIdentity
    ) -> "DeliveryConfig":
        return cls(
            endpoint=endpoint,
            api_key=api_key,
            identity=identity,
            enable_batching=True,
            batch_size=20,
            batch_upload_interval_seconds=60.0,
            request_timeout_seconds=30.0,
            environment="production",
        )
