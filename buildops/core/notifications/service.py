"""Notification service for user-facing feedback on back-office actions."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildops.common.enums import NotificationCategory, NotificationSeverity
from buildops.common.logging import get_logger
from buildops.db.models.notification import Notification

logger = get_logger("notifications.service")

_LOG_LEVELS = {
    NotificationSeverity.INFO.value: logging.INFO,
    NotificationSeverity.WARNING.value: logging.WARNING,
    NotificationSeverity.ERROR.value: logging.ERROR,
}


async def notify(
    db: AsyncSession,
    title: str,
    description: str,
    severity: str = NotificationSeverity.INFO.value,
    category: str = NotificationCategory.CHANGE_ORDER.value,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification | None:
    """Record an in-app notification.

    Fire-and-forget: a failure to persist is logged and ``None`` is returned,
    callers never see an exception from here.
    """
    logger.log(
        _LOG_LEVELS.get(severity, logging.INFO),
        "Notify [%s] %s: %s", severity, title, description,
    )

    notification = Notification(
        category=category,
        severity=severity,
        title=title,
        body=description,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_=metadata or {},
    )
    try:
        async with db.begin_nested():
            db.add(notification)
    except Exception as e:
        logger.warning("Notification '%s' not persisted: %s", title, e)
        return None

    return notification
