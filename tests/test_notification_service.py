# tests/test_notification_service.py

import json
import uuid

import pytest

from notification_service.core.exceptions import (
    DecodeError,
    DeliveryError,
    InvalidNotification,
    InvalidStatusTransition,
    NotFoundError,
    OperationTimeoutError,
    StorageError,
    TemplateNotFoundError,
    UnknownEventTypeError,
    UnsupportedTypeError,
)
from notification_service.schemas.notification import Notification
from notification_service.services.notification_service import NotificationService
from notification_service.services.providers import ProviderRegistry, build_provider_registry

from .conftest import RecordingProvider, make_settings

REGISTERED = {
    "userId": "u-42",
    "email": "ann@example.com",
    "username": "ann",
    "firstName": "Ann",
    "lastName": "Lee",
}


class FailingRepository:
    """Delegates to a real repository but fails the chosen operations"""

    def __init__(self, inner, fail=()) -> None:
        self.inner = inner
        self.fail = set(fail)

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name in self.fail:
            async def failing(*args, **kwargs):
                raise StorageError(f"{name} unavailable")
            return failing
        return attr


def _service(storage, providers, **kwargs) -> NotificationService:
    return NotificationService(
        notifications=kwargs.pop("notifications", storage.notifications),
        templates=storage.templates,
        providers=providers,
        **kwargs,
    )


async def test_send_with_succeeding_provider_stores_sent(service, storage, email_provider, observer) -> None:
    notification = Notification.create(type="email", recipient="a@example.com", subject="Hi", content="Body")

    outcome = await service.send_notification(notification)

    assert outcome.delivered is True
    assert outcome.persistence_warning is None
    assert email_provider.sent == [("a@example.com", "Hi", "Body")]
    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "sent"
    assert stored.error_message == ""
    assert observer.events == [("start", "direct", "email"), ("success", "direct", "email")]


async def test_send_with_failing_provider_stores_failed_and_raises(service, storage, email_provider, observer) -> None:
    email_provider.error = "mailbox unavailable"
    notification = Notification.create(type="email", recipient="a@example.com")

    with pytest.raises(DeliveryError) as exc_info:
        await service.send_notification(notification)

    assert exc_info.value.detail == "mailbox unavailable"
    assert exc_info.value.outcome.delivered is False
    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "failed"
    assert stored.error_message == "mailbox unavailable"
    assert observer.events[-1] == ("failure", "direct", "email", "delivery_failed")


async def test_invalid_notification_never_reaches_storage_or_provider(service, storage, email_provider) -> None:
    notification = Notification.create(type="email", recipient="")

    with pytest.raises(InvalidNotification):
        await service.send_notification(notification)

    assert email_provider.sent == []
    assert await storage.notifications.find_by_id(notification.id) is None


@pytest.mark.parametrize("notification_type", ["fax", "push"])
async def test_unsupported_type_is_rejected_before_persisting(service, storage, notification_type) -> None:
    # "push" is a known type, but no provider is registered for it here
    notification = Notification.create(type=notification_type, recipient="device-token")

    with pytest.raises(UnsupportedTypeError):
        await service.send_notification(notification)

    assert await storage.notifications.find_by_id(notification.id) is None


async def test_sms_goes_to_sms_provider(service, sms_provider, email_provider) -> None:
    notification = Notification.create(type="sms", recipient="+15551234567", content="code 1234")

    await service.send_notification(notification)

    assert sms_provider.sent == [("+15551234567", "", "code 1234")]
    assert email_provider.sent == []


async def test_failed_final_update_is_a_persistence_warning(storage, providers, observer) -> None:
    service = _service(
        storage,
        providers,
        notifications=FailingRepository(storage.notifications, fail={"update"}),
        observer=observer,
    )
    notification = Notification.create(type="email", recipient="a@example.com")

    outcome = await service.send_notification(notification)

    assert outcome.delivered is True
    assert "update unavailable" in outcome.persistence_warning
    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "pending"
    assert ("persistence_warning", "direct", "email") in observer.events


async def test_failed_initial_save_aborts_before_delivery(storage, providers, email_provider) -> None:
    service = _service(
        storage,
        providers,
        notifications=FailingRepository(storage.notifications, fail={"save"}),
    )

    with pytest.raises(StorageError):
        await service.send_notification(Notification.create(type="email", recipient="a@example.com"))

    assert email_provider.sent == []


async def test_user_registered_event_sends_welcome_email(service, storage, email_provider) -> None:
    outcome = await service.handle_event("user.registered", json.dumps(REGISTERED).encode())

    history = await storage.notifications.find_by_recipient("ann@example.com", limit=10, offset=0)
    assert len(history) == 1
    stored = history[0]
    assert stored.id == outcome.notification.id
    assert stored.type == "email"
    assert stored.status == "sent"
    assert stored.subject == "Welcome to Our Service"
    assert stored.metadata == {"eventType": "user.registered", "userId": "u-42"}
    assert stored.template_data["first_name"] == "Ann"
    assert stored.template_data["locale"] == "en"

    welcome = await storage.templates.find_by_name("welcome.html")
    assert stored.template_id == welcome.id
    assert stored.template_type == "email"
    assert "Ann" in email_provider.sent[0][2]


@pytest.mark.parametrize(
    "event_type, payload, subject",
    [
        ("user.verified", {"userId": "u-1", "email": "v@example.com"}, "Email Verification Successful"),
        (
            "user.password.reset",
            {"userId": "u-1", "email": "v@example.com", "resetLink": "https://example.com/reset?t=abc"},
            "Password Reset Request",
        ),
        ("user.password.changed", {"userId": "u-1", "email": "v@example.com"}, "Password Changed Successfully"),
    ],
)
async def test_every_routed_event_sends_one_email(service, email_provider, event_type, payload, subject) -> None:
    outcome = await service.handle_event(event_type, json.dumps(payload))

    assert outcome.notification.status == "sent"
    assert outcome.notification.subject == subject
    assert outcome.notification.metadata["eventType"] == event_type
    assert len(email_provider.sent) == 1
    if "resetLink" in payload:
        assert "https://example.com/reset?t=abc" in email_provider.sent[0][2]


async def test_unknown_event_type_persists_nothing(service, storage, email_provider, observer) -> None:
    with pytest.raises(UnknownEventTypeError):
        await service.handle_event("bogus.event", json.dumps(REGISTERED))

    assert email_provider.sent == []
    assert await storage.notifications.find_by_recipient("ann@example.com") == []
    assert observer.events[-1] == ("failure", "unknown", "email", "unknown_event_type")


@pytest.mark.parametrize(
    "event_type, payload",
    [
        ("user.registered", b"{not json"),
        ("user.registered", json.dumps({"userId": "u-1"})),
        ("user.password.reset", json.dumps({"userId": "u-1", "email": "a@example.com"})),
        ("user.verified", json.dumps(["a@example.com"])),
    ],
)
async def test_undecodable_payload_persists_nothing(service, email_provider, event_type, payload) -> None:
    with pytest.raises(DecodeError):
        await service.handle_event(event_type, payload)

    assert email_provider.sent == []


async def test_event_without_template_is_not_found(storage, providers, email_provider) -> None:
    service = _service(storage, providers)

    with pytest.raises(TemplateNotFoundError):
        await service.handle_event("user.verified", json.dumps({"email": "a@example.com"}))

    assert email_provider.sent == []
    assert await storage.notifications.find_by_recipient("a@example.com") == []


async def test_retry_redelivers_failed_notification(service, storage, email_provider) -> None:
    email_provider.error = "smtp down"
    notification = Notification.create(type="email", recipient="a@example.com")
    with pytest.raises(DeliveryError):
        await service.send_notification(notification)

    email_provider.error = None
    outcome = await service.retry_notification(notification.id)

    assert outcome.delivered is True
    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "sent"
    assert stored.retry_count == 1
    assert stored.error_message == ""
    assert len(email_provider.sent) == 2


async def test_retry_requires_failed_status(service) -> None:
    notification = Notification.create(type="email", recipient="a@example.com")
    await service.send_notification(notification)

    with pytest.raises(InvalidStatusTransition):
        await service.retry_notification(notification.id)

    with pytest.raises(NotFoundError):
        await service.retry_notification(uuid.uuid4())


async def test_slow_provider_is_a_delivery_failure(storage) -> None:
    service = _service(
        storage,
        ProviderRegistry({"email": RecordingProvider(delay=0.5)}),
        provider_timeout=0.05,
    )
    notification = Notification.create(type="email", recipient="a@example.com")

    with pytest.raises(DeliveryError) as exc_info:
        await service.send_notification(notification)

    assert "timed out" in exc_info.value.detail
    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "failed"


async def test_call_timeout_bounds_the_whole_pipeline(storage) -> None:
    service = _service(storage, ProviderRegistry({"email": RecordingProvider(delay=0.5)}))

    with pytest.raises(OperationTimeoutError):
        await service.send_notification(
            Notification.create(type="email", recipient="a@example.com"),
            timeout=0.05,
        )


async def test_history_queries(service) -> None:
    for _ in range(3):
        await service.send_notification(Notification.create(type="email", recipient="h@example.com"))

    assert len(await service.get_notification_history("h@example.com")) == 3
    assert len(await service.get_notification_history("h@example.com", limit=2)) == 2
    assert await service.get_notification_history("none@example.com") == []
    assert await service.get_notification("not-a-uuid") is None


async def test_unconfigured_channel_is_recorded_failed_outside_development(storage) -> None:
    service = _service(storage, build_provider_registry(make_settings(ENVIRONMENT="production")))
    notification = Notification.create(type="email", recipient="a@example.com", subject="Hi", content="Body")

    with pytest.raises(DeliveryError, match="email provider not configured"):
        await service.send_notification(notification)

    stored = await storage.notifications.find_by_id(notification.id)
    assert stored.status == "failed"
    assert stored.error_message == "email provider not configured"
