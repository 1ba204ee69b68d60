from fastapi import APIRouter, Depends, HTTPException, Query

from schoolflow.api.core.container import Container, get_container
from schoolflow.api.schemas import NotificationOut
from schoolflow.domain.notifications import InboxNotificationSink

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_inbox(container: Container = Depends(get_container)) -> InboxNotificationSink:
    sink = container.sink
    if not isinstance(sink, InboxNotificationSink):
        raise HTTPException(status_code=501, detail="Notification inbox is not enabled")
    return sink


@router.get("/{recipient_id}", response_model=list[NotificationOut])
def list_notifications(
    recipient_id: str,
    unread_only: bool = Query(default=False),
    inbox: InboxNotificationSink = Depends(get_inbox),
):
    """Notifications for a user (or a ``role:<name>`` channel), newest first."""
    return [NotificationOut.from_notification(n) for n in inbox.list_for(recipient_id, unread_only=unread_only)]


@router.post("/{recipient_id}/{notification_id}/read", status_code=204)
def mark_notification_read(
    recipient_id: str,
    notification_id: str,
    inbox: InboxNotificationSink = Depends(get_inbox),
):
    if not inbox.mark_read(recipient_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
