# tests/conftest.py

import asyncio
from typing import List, Optional, Tuple

import fakeredis
import pytest

from notification_service.core.config import Settings
from notification_service.core.exceptions import DeliveryError
from notification_service.repositories import build_storage
from notification_service.services.notification_service import NotificationService
from notification_service.services.providers import ProviderRegistry
from notification_service.services.template_seeder import seed_default_templates


def make_settings(**overrides) -> Settings:
    values = {
        "STORE_BACKEND": "postgres",
        "DATABASE_URL": "sqlite:///:memory:",
        "SEED_DEFAULT_TEMPLATES": False,
        "PROMETHEUS_ENABLED": False,
        "HEALTH_CHECK_INTERVAL": 60.0,
        "HEALTH_CHECK_TIMEOUT": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


def fake_redis():
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


class RecordingProvider:
    """Provider that records every send and fails while ``error`` is set"""

    def __init__(self, error: Optional[str] = None, delay: float = 0.0) -> None:
        self.error = error
        self.delay = delay
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, destination: str, primary_text: str, body: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.sent.append((destination, primary_text, body))
        if self.error:
            raise DeliveryError(self.error)


class RecordingObserver:
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def on_start(self, kind, channel) -> None:
        self.events.append(("start", kind, channel))

    def on_success(self, kind, channel, duration) -> None:
        self.events.append(("success", kind, channel))

    def on_failure(self, kind, channel, error_kind, duration) -> None:
        self.events.append(("failure", kind, channel, error_kind))

    def on_persistence_warning(self, kind, channel) -> None:
        self.events.append(("persistence_warning", kind, channel))


@pytest.fixture(params=["postgres", "redis"])
async def storage(request):
    """Connected Storage for each backend (SQLite in memory / fakeredis)"""
    settings = make_settings(STORE_BACKEND=request.param)
    redis_client = fake_redis() if request.param == "redis" else None
    storage = await build_storage(settings, redis_client=redis_client)
    yield storage
    await storage.close()


@pytest.fixture
def email_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def sms_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def providers(email_provider, sms_provider) -> ProviderRegistry:
    return ProviderRegistry({"email": email_provider, "sms": sms_provider})


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
async def service(storage, providers, observer) -> NotificationService:
    await seed_default_templates(storage.templates)
    return NotificationService(
        notifications=storage.notifications,
        templates=storage.templates,
        providers=providers,
        observer=observer,
        provider_timeout=1.0,
        storage_timeout=1.0,
    )
