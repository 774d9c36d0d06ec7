import logging

from fastapi import APIRouter, Depends

from admin_portal.dependencies import cancellation_token, get_notifier, require_session
from admin_portal.models.notification import (
    IndividualNotification,
    NotificationResponse,
    SegmentNotification,
)
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.notifications import NotificationClient, send_individual_notification

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_session)],
)


@router.post("/send", response_model=NotificationResponse)
async def send_to_segment(
    body: SegmentNotification,
    notifier: NotificationClient = Depends(get_notifier),
    token: CancellationToken = Depends(cancellation_token),
):
    """Push a notification to every CHEW, doctor or patient."""
    data = await notifier.send_segment_notification(body.segment, body.title, body.message, token=token)
    return NotificationResponse(message="Notification sent successfully", data=data)


@router.post("/send-individual", response_model=NotificationResponse)
async def send_to_individual(body: IndividualNotification):
    data = send_individual_notification(body.email, body.title, body.message)
    return NotificationResponse(message="Individual notification sent successfully", data=data)
