"""Services package"""

from .email_service import EmailService
from .sms_service import SMSService
from .push_notification_service import PushNotificationService
from .providers import DeliveryProvider, ProviderRegistry, build_provider_registry
from .template_renderer import RenderedTemplate, TemplateRenderer
from .notification_service import DispatchOutcome, NotificationService, build_notification_service
from .event_consumer import EventConsumer

__all__ = [
    "EmailService",
    "SMSService",
    "PushNotificationService",
    "DeliveryProvider",
    "ProviderRegistry",
    "build_provider_registry",
    "RenderedTemplate",
    "TemplateRenderer",
    "DispatchOutcome",
    "NotificationService",
    "build_notification_service",
    "EventConsumer",
]
