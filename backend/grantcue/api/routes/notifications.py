"""In-app notification routes."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from sqlalchemy import delete, func, select, update

from grantcue.api.deps import CurrentUser, DbSession
from grantcue.models.notification import InAppNotification

router = APIRouter()


# Schemas
class NotificationResponse(BaseModel):
    id: UUID
    org_id: UUID
    type: str
    title: str
    message: str
    related_grant_id: str | None
    related_alert_id: UUID | None
    action_url: str | None
    action_label: str | None
    read_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    notification_ids: list[UUID] | None = None
    mark_all_read: bool = False


def _parse_ids(raw: str) -> list[UUID]:
    try:
        return [UUID(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid notification id")


@router.get("")
async def list_notifications(
    current_user: CurrentUser,
    db: DbSession,
    limit: int = 50,
    unread_only: bool = False,
):
    """List the caller's notifications with the unread count."""
    query = (
        select(InAppNotification)
        .where(InAppNotification.user_id == current_user.id)
        .where(InAppNotification.dismissed_at.is_(None))
    )

    if unread_only:
        query = query.where(InAppNotification.read_at.is_(None))

    query = query.order_by(InAppNotification.created_at.desc()).limit(limit)

    result = await db.execute(query)
    notifications = result.scalars().all()

    unread = await db.scalar(
        select(func.count())
        .select_from(InAppNotification)
        .where(InAppNotification.user_id == current_user.id)
        .where(InAppNotification.dismissed_at.is_(None))
        .where(InAppNotification.read_at.is_(None))
    )

    return {
        "notifications": [NotificationResponse.model_validate(n) for n in notifications],
        "unreadCount": unread or 0,
    }


@router.post("")
async def mark_read(request: MarkReadRequest, current_user: CurrentUser, db: DbSession):
    """Mark some or all of the caller's notifications as read."""
    query = (
        update(InAppNotification)
        .where(InAppNotification.user_id == current_user.id)
        .where(InAppNotification.read_at.is_(None))
        .values(read_at=datetime.utcnow())
    )

    if not request.mark_all_read:
        if not request.notification_ids:
            raise HTTPException(status_code=400, detail="Either notification_ids or mark_all_read is required")
        query = query.where(InAppNotification.id.in_(request.notification_ids))

    await db.execute(query)
    await db.commit()

    return {"success": True}


@router.delete("")
async def delete_notifications(
    current_user: CurrentUser,
    db: DbSession,
    notification_id: UUID | None = None,
    notification_ids: str | None = None,
):
    """Delete one notification, or several given as a comma-separated list."""
    if notification_id:
        ids = [notification_id]
    elif notification_ids:
        ids = _parse_ids(notification_ids)
    else:
        raise HTTPException(status_code=400, detail="Notification ID(s) required")

    await db.execute(
        delete(InAppNotification)
        .where(InAppNotification.user_id == current_user.id)
        .where(InAppNotification.id.in_(ids))
    )
    await db.commit()

    return {"success": True}
