# Notification Service for the Campaign Engine
# Provides centralized, fire-and-forget notification creation

from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum
import logging

from database.marketplace_models import Notification

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Lifecycle events users are told about."""
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"
    CONTENT_APPROVED = "content_approved"
    CONTENT_REJECTED = "content_rejected"
    CONTENT_COMPLETED = "content_completed"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    CAMPAIGN_AUTO_COMPLETED = "campaign_auto_completed"
    SYSTEM = "system"


# Title and message template per event; templates are filled from the payload
MESSAGES: Dict[NotificationType, tuple] = {
    NotificationType.APPLICATION_ACCEPTED: (
        "Application Accepted! ✅",
        "Your application to {campaign_title} was accepted. You can now submit content.",
    ),
    NotificationType.APPLICATION_REJECTED: (
        "Application Declined",
        "Your application to {campaign_title} was not accepted.",
    ),
    NotificationType.CONTENT_APPROVED: (
        "Content Approved! 🎉",
        "Your content for {campaign_title} was approved. Please publish it.",
    ),
    NotificationType.CONTENT_REJECTED: (
        "Revision Requested",
        "Your content for {campaign_title} needs changes.",
    ),
    NotificationType.CONTENT_COMPLETED: (
        "Content Completed",
        "Your content for {campaign_title} was marked complete and is awaiting payment.",
    ),
    NotificationType.PAYMENT_RECEIVED: (
        "Payment Received! 💰",
        "You received KES {net_amount} for your campaign work.",
    ),
    NotificationType.PAYMENT_FAILED: (
        "Payment Failed",
        "A payment of KES {net_amount} could not be settled.",
    ),
    NotificationType.CAMPAIGN_AUTO_COMPLETED: (
        "Campaign Completed",
        "{campaign_title} passed its end date and was completed automatically.",
    ),
}


class _SafeDict(dict):
    def __missing__(self, key):
        return ""


class NotificationService:
    """
    Service for creating and managing user notifications.
    Services call `notify`; a failure there never fails the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: NotificationType | str,
        title: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Notification:
        """Create a notification row in the current transaction."""
        if isinstance(type, NotificationType):
            type = type.value

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
        )
        self.db.add(notification)
        self.db.flush()  # Get the ID without committing
        return notification

    def notify(
        self,
        event: NotificationType | str,
        user_id: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """
        Fire-and-forget notification.

        Runs inside a SAVEPOINT so a failing insert only rolls back itself.
        Errors are logged at WARNING and dropped.
        """
        payload = payload or {}
        try:
            event = NotificationType(event)
        except ValueError:
            event = NotificationType.SYSTEM

        title, template = MESSAGES.get(event, ("Notification", ""))
        message = template.format_map(_SafeDict({k: v for k, v in payload.items()}))
        data = {k: str(v) if v is not None and not isinstance(v, (int, float, bool, str, list, dict)) else v
                for k, v in payload.items()}

        try:
            with self.db.begin_nested():
                return self.create(user_id=user_id, type=event, title=title, message=message, data=data)
        except Exception as e:
            logger.warning(f"Failed to notify user {user_id} of {event.value}: {e}")
            return None

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """
        Mark a notification as read.

        Returns:
            True if notification was marked read, False if not found
        """
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if notification:
            notification.read = True
            notification.read_at = datetime.utcnow()
            return True
        return False

    def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for a user."""
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False  # noqa: E712
        ).count()


def get_notification_service(db: Session) -> NotificationService:
    """Get NotificationService instance."""
    return NotificationService(db)
