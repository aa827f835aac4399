"""
Notification orchestration

Every send goes through one pipeline: validate, resolve the provider, persist,
deliver, record the outcome. Event-driven sends first turn an event into a
rendered email notification through the event route table.
"""

from dataclasses import dataclass
from typing import Awaitable, List, Optional, Union
import asyncio
import logging
import time

from pydantic import ValidationError as PydanticValidationError

from notification_service.core.config import Settings
from notification_service.core.exceptions import (
    DecodeError,
    DeliveryError,
    InvalidStatusTransition,
    NotFoundError,
    NotificationServiceError,
    OperationTimeoutError,
    StorageError,
    UnknownEventTypeError,
)
from notification_service.core.monitoring import NotificationObserver, NullObserver
from notification_service.repositories.base import IdLike, NotificationRepository, TemplateRepository
from notification_service.schemas.notification import (
    Notification,
    NotificationStatus,
    NotificationType,
    utcnow,
)

from .event_routes import EVENT_ROUTES, EventRoute
from .providers import DeliveryProvider, ProviderRegistry, build_provider_registry
from .template_renderer import TemplateRenderer

logger = logging.getLogger(__name__)

DIRECT = "direct"
RETRY = "retry"
UNKNOWN_EVENT = "unknown"


@dataclass
class DispatchOutcome:
    """Result of one pipeline run

    ``persistence_warning`` is set when delivery finished but the final status
    could not be written; the stored record then still shows the status it
    had before delivery.
    """

    notification: Notification
    delivered: bool
    error: Optional[str] = None
    persistence_warning: Optional[str] = None


class NotificationService:
    """Dispatches notifications and answers history queries"""

    def __init__(
        self,
        notifications: NotificationRepository,
        templates: TemplateRepository,
        providers: ProviderRegistry,
        renderer: Optional[TemplateRenderer] = None,
        observer: Optional[NotificationObserver] = None,
        provider_timeout: float = 15.0,
        storage_timeout: float = 5.0,
        default_locale: str = "en",
    ):
        self.notifications = notifications
        self.templates = templates
        self.providers = providers
        self.renderer = renderer or TemplateRenderer(templates)
        self.observer = observer or NullObserver()
        self.provider_timeout = provider_timeout
        self.storage_timeout = storage_timeout
        self.default_locale = default_locale

    # Public operations

    async def send_notification(
        self,
        notification: Notification,
        timeout: Optional[float] = None
    ) -> DispatchOutcome:
        """
        Persist and deliver a notification.

        Raises DeliveryError (carrying the outcome) when the provider fails;
        the stored record is then marked failed.
        """
        channel = notification.type or "unknown"
        return await self._with_timeout(
            self._observed(DIRECT, channel, self._pipeline(notification, DIRECT, is_new=True)),
            timeout,
            "send_notification",
        )

    async def handle_event(
        self,
        event_type: str,
        payload: Union[bytes, str],
        timeout: Optional[float] = None,
        locale: Optional[str] = None
    ) -> DispatchOutcome:
        """Turn a user lifecycle event into an email and dispatch it"""
        route = EVENT_ROUTES.get(event_type)
        kind = event_type if route is not None else UNKNOWN_EVENT
        return await self._with_timeout(
            self._observed(
                kind,
                NotificationType.EMAIL.value,
                self._handle_event(event_type, route, payload, locale or self.default_locale),
            ),
            timeout,
            "handle_event",
        )

    async def retry_notification(
        self,
        notification_id: IdLike,
        timeout: Optional[float] = None
    ) -> DispatchOutcome:
        """Re-deliver a failed notification"""
        return await self._with_timeout(self._retry(notification_id), timeout, "retry_notification")

    async def get_notification(self, notification_id: IdLike) -> Optional[Notification]:
        return await self._storage(self.notifications.find_by_id(notification_id), "find_by_id")

    async def get_notification_history(
        self,
        recipient: str,
        limit: int = 10,
        offset: int = 0
    ) -> List[Notification]:
        return await self._storage(
            self.notifications.find_by_recipient(recipient, limit, offset),
            "find_by_recipient",
        )

    # Pipeline

    async def _handle_event(
        self,
        event_type: str,
        route: Optional[EventRoute],
        payload: Union[bytes, str],
        locale: str
    ) -> DispatchOutcome:
        if route is None:
            raise UnknownEventTypeError(event_type)

        try:
            event = route.payload_model.model_validate_json(payload)
        except PydanticValidationError as e:
            raise DecodeError(f"invalid {event_type} payload: {e.errors(include_url=False)}") from e

        context = dict(route.build_context(event))
        context["year"] = str(utcnow().year)
        context["locale"] = locale

        rendered = await self._storage(
            self.renderer.render(route.template_name, context, locale=locale),
            "render",
        )

        notification = Notification.create(
            type=NotificationType.EMAIL,
            recipient=route.recipient(event),
            subject=rendered.subject or route.default_subject,
            content=rendered.content,
            template_id=rendered.template.id,
            template_type=rendered.template.type,
            template_data=context,
            metadata={"eventType": event_type, "userId": event.user_id},
        )

        logger.info(f"Dispatching {event_type} notification {notification.id} to {notification.recipient}")
        return await self._pipeline(notification, event_type, is_new=True)

    async def _retry(self, notification_id: IdLike) -> DispatchOutcome:
        notification = await self.get_notification(notification_id)
        if notification is None:
            raise NotFoundError(f"notification not found: {notification_id}")
        if notification.status != NotificationStatus.FAILED.value:
            raise InvalidStatusTransition(notification.status, NotificationStatus.SENT.value)

        notification.increment_retry_count()
        logger.info(f"Retrying notification {notification.id} (attempt {notification.retry_count})")
        return await self._observed(
            RETRY, notification.type, self._pipeline(notification, RETRY, is_new=False)
        )

    async def _pipeline(self, notification: Notification, kind: str, is_new: bool) -> DispatchOutcome:
        notification.validate()
        if is_new and notification.status != NotificationStatus.PENDING.value:
            raise InvalidStatusTransition(notification.status, NotificationStatus.SENT.value)
        provider = self.providers.get(notification.type)

        if is_new:
            await self._storage(self.notifications.save(notification), "save")

        error = None
        try:
            await self._deliver(provider, notification)
            notification.mark_sent()
        except DeliveryError as e:
            error = e.detail
            notification.mark_failed(error)
            logger.warning(f"Delivery of notification {notification.id} failed: {error}")

        warning = None
        try:
            await self._storage(self.notifications.update(notification), "update")
        except (StorageError, NotFoundError) as e:
            warning = f"failed to record status {notification.status}: {e.detail}"
            logger.error(f"Notification {notification.id}: {warning}")
            self.observer.on_persistence_warning(kind, notification.type)

        outcome = DispatchOutcome(
            notification=notification,
            delivered=error is None,
            error=error,
            persistence_warning=warning,
        )
        if error is not None:
            raise DeliveryError(error, outcome=outcome)
        return outcome

    async def _deliver(self, provider: DeliveryProvider, notification: Notification) -> None:
        try:
            await asyncio.wait_for(
                provider.send(notification.recipient, notification.subject, notification.content),
                timeout=self.provider_timeout,
            )
        except DeliveryError:
            raise
        except asyncio.TimeoutError:
            raise DeliveryError(f"provider timed out after {self.provider_timeout}s")
        except Exception as e:
            raise DeliveryError(str(e) or e.__class__.__name__) from e

    # Helpers

    async def _storage(self, operation: Awaitable, name: str):
        try:
            return await asyncio.wait_for(operation, timeout=self.storage_timeout)
        except asyncio.TimeoutError:
            raise StorageError(f"{name} timed out after {self.storage_timeout}s")

    async def _observed(self, kind: str, channel: str, run: Awaitable[DispatchOutcome]) -> DispatchOutcome:
        started = time.perf_counter()
        self.observer.on_start(kind, channel)
        try:
            outcome = await run
        except NotificationServiceError as e:
            self.observer.on_failure(kind, channel, e.error_code.lower(), time.perf_counter() - started)
            raise
        except asyncio.CancelledError:
            self.observer.on_failure(kind, channel, "cancelled", time.perf_counter() - started)
            raise
        self.observer.on_success(kind, channel, time.perf_counter() - started)
        return outcome

    @staticmethod
    async def _with_timeout(run: Awaitable[DispatchOutcome], timeout: Optional[float], name: str) -> DispatchOutcome:
        if timeout is None:
            return await run
        try:
            return await asyncio.wait_for(run, timeout=timeout)
        except asyncio.TimeoutError:
            raise OperationTimeoutError(f"{name} timed out after {timeout}s")


def build_notification_service(
    storage,
    settings: Settings,
    providers: Optional[ProviderRegistry] = None,
    observer: Optional[NotificationObserver] = None,
) -> NotificationService:
    """Wire the orchestrator to a connected Storage bundle"""
    return NotificationService(
        notifications=storage.notifications,
        templates=storage.templates,
        providers=providers or build_provider_registry(settings),
        observer=observer,
        provider_timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        storage_timeout=settings.STORAGE_TIMEOUT_SECONDS,
        default_locale=settings.DEFAULT_LOCALE,
    )
