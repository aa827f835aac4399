"""
User lifecycle events and the notification each one produces
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Type

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    USER_REGISTERED = "user.registered"
    USER_VERIFIED = "user.verified"
    PASSWORD_RESET = "user.password.reset"
    PASSWORD_CHANGED = "user.password.changed"


class UserEventPayload(BaseModel):
    """Fields common to every user event (camelCase on the wire)"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field("", alias="userId")
    email: str = Field(..., min_length=1)


class UserRegisteredPayload(UserEventPayload):
    username: str = ""
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")


class PasswordResetPayload(UserEventPayload):
    reset_link: str = Field(..., min_length=1, alias="resetLink")


def _email_context(payload: UserEventPayload) -> Dict[str, str]:
    return {"email": payload.email}


def _registered_context(payload: UserRegisteredPayload) -> Dict[str, str]:
    return {
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "username": payload.username,
        "email": payload.email,
    }


def _password_reset_context(payload: PasswordResetPayload) -> Dict[str, str]:
    return {"email": payload.email, "reset_link": payload.reset_link}


@dataclass(frozen=True)
class EventRoute:
    template_name: str
    default_subject: str
    payload_model: Type[UserEventPayload]
    build_context: Callable[[UserEventPayload], Dict[str, str]]

    def recipient(self, payload: UserEventPayload) -> str:
        return payload.email


EVENT_ROUTES: Dict[str, EventRoute] = {
    EventType.USER_REGISTERED.value: EventRoute(
        template_name="welcome.html",
        default_subject="Welcome to Our Service",
        payload_model=UserRegisteredPayload,
        build_context=_registered_context,
    ),
    EventType.USER_VERIFIED.value: EventRoute(
        template_name="email_verified.html",
        default_subject="Email Verification Successful",
        payload_model=UserEventPayload,
        build_context=_email_context,
    ),
    EventType.PASSWORD_RESET.value: EventRoute(
        template_name="password_reset.html",
        default_subject="Password Reset Request",
        payload_model=PasswordResetPayload,
        build_context=_password_reset_context,
    ),
    EventType.PASSWORD_CHANGED.value: EventRoute(
        template_name="password_changed.html",
        default_subject="Password Changed Successfully",
        payload_model=UserEventPayload,
        build_context=_email_context,
    ),
}
