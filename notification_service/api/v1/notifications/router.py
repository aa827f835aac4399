"""
Notification API routes
"""

from fastapi import APIRouter, Depends, Query, Request, status
from typing import List
import uuid
import logging

from notification_service.core.exceptions import NotFoundError
from notification_service.services.notification_service import DispatchOutcome, NotificationService

from .schemas import DispatchResponse, NotificationCreate, NotificationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def _dispatch_response(outcome: DispatchOutcome) -> DispatchResponse:
    return DispatchResponse(
        notification=NotificationResponse.from_notification(outcome.notification),
        delivered=outcome.delivered,
        persistence_warning=outcome.persistence_warning,
    )


@router.post(
    "",
    response_model=DispatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send notification",
    description="Persist a notification and deliver it through its channel"
)
async def send_notification(
    data: NotificationCreate,
    service: NotificationService = Depends(get_notification_service)
):
    """Send a notification directly"""
    outcome = await service.send_notification(data.to_notification())
    return _dispatch_response(outcome)


@router.get(
    "",
    response_model=List[NotificationResponse],
    summary="Notification history",
    description="Notifications of a recipient, newest first"
)
async def list_notifications(
    recipient: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: NotificationService = Depends(get_notification_service)
):
    notifications = await service.get_notification_history(recipient, limit, offset)
    return [NotificationResponse.from_notification(n) for n in notifications]


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
    summary="Get notification"
)
async def get_notification(
    notification_id: uuid.UUID,
    service: NotificationService = Depends(get_notification_service)
):
    notification = await service.get_notification(notification_id)
    if notification is None:
        raise NotFoundError(f"notification not found: {notification_id}")
    return NotificationResponse.from_notification(notification)


@router.post(
    "/{notification_id}/retry",
    response_model=DispatchResponse,
    summary="Retry notification",
    description="Re-deliver a failed notification"
)
async def retry_notification(
    notification_id: uuid.UUID,
    service: NotificationService = Depends(get_notification_service)
):
    outcome = await service.retry_notification(notification_id)
    return _dispatch_response(outcome)
