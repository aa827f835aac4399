"""
Custom exception classes
Every error raised by the dispatcher carries an error code, the HTTP status the
API layer maps it to, and whether the stream consumer should redeliver it
"""

from typing import Optional


class NotificationServiceError(Exception):
    """Base exception class for the notification service"""

    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if error_code:
            self.error_code = error_code


class ValidationError(NotificationServiceError):
    """Bad input, correctable by the caller"""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidNotification(ValidationError):
    """Notification failed entity validation"""

    error_code = "INVALID_NOTIFICATION"


class InvalidTemplate(ValidationError):
    """Template failed entity validation"""

    error_code = "INVALID_TEMPLATE"


class InvalidStatusTransition(ValidationError):
    """Status change not allowed by the notification state machine"""

    error_code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"cannot move notification from {current} to {target}")
        self.current = current
        self.target = target


class NotFoundError(NotificationServiceError):
    """Requested record does not exist"""

    error_code = "NOT_FOUND"
    status_code = 404


class StorageError(NotificationServiceError):
    """Backend I/O failure"""

    error_code = "STORAGE_ERROR"
    status_code = 503
    retryable = True


class DeliveryError(NotificationServiceError):
    """Provider failed to deliver a message"""

    error_code = "DELIVERY_FAILED"
    status_code = 424

    def __init__(self, detail: str, outcome=None):
        super().__init__(detail)
        # DispatchOutcome of the pipeline run, when raised by the orchestrator
        self.outcome = outcome


class UnsupportedTypeError(NotificationServiceError):
    """No provider handles the notification type"""

    error_code = "UNSUPPORTED_TYPE"
    status_code = 400

    def __init__(self, notification_type: str):
        super().__init__(f"unsupported notification type: {notification_type}")
        self.notification_type = notification_type


class UnknownEventTypeError(NotificationServiceError):
    """Inbound event type has no route"""

    error_code = "UNKNOWN_EVENT_TYPE"
    status_code = 400

    def __init__(self, event_type: str):
        super().__init__(f"unknown event type: {event_type}")
        self.event_type = event_type


class DecodeError(NotificationServiceError):
    """Malformed event payload"""

    error_code = "DECODE_ERROR"
    status_code = 400


class RenderError(NotificationServiceError):
    """Template could not be rendered"""

    error_code = "RENDER_ERROR"
    status_code = 500


class TemplateNotFoundError(RenderError, NotFoundError):
    """No active template matches the requested name"""

    error_code = "TEMPLATE_NOT_FOUND"
    status_code = 404

    def __init__(self, template_name: str):
        super().__init__(f"template not found: {template_name}")
        self.template_name = template_name


class OperationTimeoutError(NotificationServiceError):
    """Operation exceeded its deadline"""

    error_code = "TIMEOUT"
    status_code = 504
    retryable = True
