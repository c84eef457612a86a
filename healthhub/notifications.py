"""In-app notifications written alongside business events"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: Optional[str],
    type: str,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
    action_url: Optional[str] = None,
) -> Optional[Notification]:
    """Queue a notification row in the current transaction, caller commits"""
    if not user_id:
        return None
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        meta=metadata or {},
        action_url=action_url,
    )
    db.add(notification)
    logger.debug(f"🔔 Notification '{type}' queued for {user_id}")
    return notification
