"""Push notification delivery via FCM"""

from typing import Optional
import asyncio
import logging

import firebase_admin
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from notification_service.core.config import Settings
from notification_service.core.exceptions import DeliveryError
from notification_service.core.firebase import initialize_firebase

logger = logging.getLogger(__name__)


class PushNotificationService:
    """Sends one message to one device token"""

    def __init__(self, settings: Settings, app: Optional[firebase_admin.App] = None):
        self.app = app or initialize_firebase(settings)
        self.enabled = self.app is not None
        self.dry_run = settings.ENVIRONMENT == "development"

        if not self.enabled:
            logger.warning("Push service is disabled - Firebase credentials not configured")

    def build_message(self, token: str, title: str, body: str) -> messaging.Message:
        return messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            token=token,
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(sound="default")
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(sound="default")
                )
            )
        )

    async def send(self, destination: str, primary_text: str, body: str) -> None:
        if not self.enabled:
            if not self.dry_run:
                raise DeliveryError("push provider not configured")
            logger.info(f"Push (disabled): To {destination} - {primary_text}")
            return

        message = self.build_message(destination, primary_text, body)

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: messaging.send(message, app=self.app)
            )
        except (FirebaseError, ValueError) as e:
            logger.error(f"Failed to send push notification to {destination}: {str(e)}")
            raise DeliveryError(f"failed to send push notification: {e}") from e

        logger.info(f"Successfully sent push notification: {response}")
