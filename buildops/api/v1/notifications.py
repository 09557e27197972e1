"""In-app notifications raised by back-office actions."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.api.deps import get_db
from buildops.common.exceptions import NotFoundError
from buildops.common.pagination import PaginatedResponse, PaginationParams, paginate
from buildops.db.models.notification import Notification

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ---------- Schemas ----------

class NotificationResponse(BaseModel):
    id: uuid.UUID
    category: str
    severity: str
    title: str
    body: str
    entity_type: str | None
    entity_id: uuid.UUID | None
    is_read: bool
    created_at: str


class NotificationListResponse(PaginatedResponse[NotificationResponse]):
    unread_count: int


# ---------- Endpoints ----------

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    unread_only: bool = False,
    severity: str | None = None,
    entity_id: uuid.UUID | None = None,
):
    query = select(Notification).where(Notification.live())
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    if severity:
        query = query.where(Notification.severity == severity)
    if entity_id:
        query = query.where(Notification.entity_id == entity_id)
    if not params.sort_by:
        query = query.order_by(Notification.created_at.desc())

    items, total = await paginate(db, query, params, Notification)
    total_pages = params.total_pages(total)

    unread_count = (
        await db.execute(
            select(func.count()).select_from(Notification).where(
                Notification.is_read.is_(False),
                Notification.live(),
            )
        )
    ).scalar() or 0

    return NotificationListResponse(
        items=[_notif_response(n) for n in items],
        total=total, page=params.page, page_size=params.page_size,
        total_pages=total_pages, unread_count=unread_count,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id)
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise NotFoundError("Notification", str(notification_id))

    notif.is_read = True
    await db.flush()
    await db.refresh(notif)
    return _notif_response(notif)


def _notif_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id, category=n.category, severity=n.severity, title=n.title, body=n.body,
        entity_type=n.entity_type, entity_id=n.entity_id, is_read=n.is_read,
        created_at=n.created_at.isoformat(),
    )
