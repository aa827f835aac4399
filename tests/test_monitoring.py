# tests/test_monitoring.py

import logging

import pytest
from prometheus_client import REGISTRY

from notification_service.core.exceptions import NotFoundError, StorageError
from notification_service.core.monitoring import RepositoryOperationContext
from notification_service.repositories.redis_store import RedisNotificationRepository
from notification_service.schemas.notification import Notification

from .conftest import fake_redis


def _count(operation: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "notification_repository_operation_total",
        {"backend": "redis", "operation": operation, "status": status},
    )
    return value or 0.0


async def test_missing_record_is_counted_as_not_found(caplog) -> None:
    repository = RedisNotificationRepository(fake_redis(), retention_seconds=60)
    before = _count("notification.update", "not_found")
    errors_before = _count("notification.update", "error")

    with caplog.at_level(logging.DEBUG, logger="notification_service.core.monitoring"):
        with pytest.raises(NotFoundError):
            await repository.update(Notification.create(type="email", recipient="a@example.com"))

    assert _count("notification.update", "not_found") == before + 1
    assert _count("notification.update", "error") == errors_before
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


def test_failures_are_counted_and_logged_as_errors(caplog) -> None:
    before = _count("template.save", "error")

    with pytest.raises(StorageError):
        with RepositoryOperationContext("redis", "template.save"):
            raise StorageError("connection refused")

    assert _count("template.save", "error") == before + 1
    assert any(r.levelno == logging.ERROR for r in caplog.records)
