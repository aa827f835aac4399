"""SMS delivery with Twilio integration"""

from typing import Optional
import asyncio
import logging

import phonenumbers
from twilio.rest import Client
from twilio.base.exceptions import TwilioException

from notification_service.core.config import Settings
from notification_service.core.exceptions import DeliveryError

logger = logging.getLogger(__name__)

MAX_SMS_LENGTH = 1600


class SMSService:
    """SMS service using Twilio"""

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        self.enabled = bool(settings.TWILIO_ACCOUNT_SID) or client is not None
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.messaging_service_sid = settings.TWILIO_MESSAGING_SERVICE_SID
        self.default_region = settings.SMS_DEFAULT_REGION
        self.dry_run = settings.ENVIRONMENT == "development"
        self.client = client

        if self.enabled and self.client is None:
            self.client = Client(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN
            )
        elif not self.enabled:
            logger.warning("SMS service is disabled - Twilio credentials not configured")

    def format_phone_number(self, phone: str) -> str:
        """Format phone number to E.164 format"""
        try:
            parsed = phonenumbers.parse(phone, self.default_region)
        except phonenumbers.NumberParseException as e:
            raise DeliveryError(f"invalid phone number {phone}: {e}") from e

        if not phonenumbers.is_possible_number(parsed):
            raise DeliveryError(f"invalid phone number: {phone}")
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    async def send(self, destination: str, primary_text: str, body: str) -> None:
        """Send ``body`` as a text message; ``primary_text`` is not used"""
        to_number = self.format_phone_number(destination)

        if len(body) > MAX_SMS_LENGTH:
            body = body[:MAX_SMS_LENGTH - 3] + "..."

        if not self.enabled:
            if not self.dry_run:
                raise DeliveryError("sms provider not configured")
            logger.info(f"SMS (disabled): To {to_number} - {body}")
            return

        kwargs = {"body": body, "to": to_number}
        # Use messaging service if available for better deliverability
        if self.messaging_service_sid:
            kwargs["messaging_service_sid"] = self.messaging_service_sid
        else:
            kwargs["from_"] = self.from_number

        try:
            # Run in thread pool
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                lambda: self.client.messages.create(**kwargs)
            )
        except TwilioException as e:
            logger.error(f"Twilio error sending SMS to {to_number}: {str(e)}")
            raise DeliveryError(f"failed to send sms: {e}") from e

        logger.info(f"SMS sent to {to_number}, SID: {result.sid}")
