"""
Delivery provider contract and the type -> provider registry
"""

from typing import Dict, Optional, Protocol, runtime_checkable
import logging

from notification_service.core.config import Settings
from notification_service.core.exceptions import UnsupportedTypeError
from notification_service.schemas.notification import NotificationType

logger = logging.getLogger(__name__)


@runtime_checkable
class DeliveryProvider(Protocol):
    """
    One delivery channel.

    ``primary_text`` is the email subject or the push title; SMS ignores it.
    Implementations raise DeliveryError with the failure reason.
    """

    async def send(self, destination: str, primary_text: str, body: str) -> None: ...


class ProviderRegistry:
    """Maps notification types to their provider"""

    def __init__(self, providers: Optional[Dict[str, DeliveryProvider]] = None):
        self._providers: Dict[str, DeliveryProvider] = {}
        for notification_type, provider in (providers or {}).items():
            self.register(notification_type, provider)

    def register(self, notification_type, provider: DeliveryProvider) -> None:
        key = NotificationType(notification_type).value
        self._providers[key] = provider

    def get(self, notification_type: str) -> DeliveryProvider:
        try:
            key = NotificationType(notification_type).value
        except ValueError:
            raise UnsupportedTypeError(str(notification_type))

        provider = self._providers.get(key)
        if provider is None:
            raise UnsupportedTypeError(key)
        return provider

    def __contains__(self, notification_type) -> bool:
        try:
            return NotificationType(notification_type).value in self._providers
        except ValueError:
            return False


def build_provider_registry(settings: Settings) -> ProviderRegistry:
    """Registry with the SMTP, Twilio and Firebase providers"""
    from .email_service import EmailService
    from .push_notification_service import PushNotificationService
    from .sms_service import SMSService

    return ProviderRegistry({
        NotificationType.EMAIL: EmailService(settings),
        NotificationType.SMS: SMSService(settings),
        NotificationType.PUSH: PushNotificationService(settings),
    })
