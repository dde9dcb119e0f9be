"""Grant alert routes - saved searches and their matches."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select

from grantcue.api.deps import AuthUser, CurrentUser, DbSession, require_member
from grantcue.models.alert import Alert, AlertMatch

router = APIRouter()


# Schemas
class AlertFields(BaseModel):
    description: str | None = None
    keyword: str | None = None
    category: str | None = None
    agency: str | None = None
    status_posted: bool | None = True
    status_forecasted: bool | None = True
    due_in_days: int | None = Field(None, ge=0, le=3650)
    min_amount: float | None = Field(None, ge=0)
    max_amount: float | None = Field(None, ge=0)
    frequency: Literal["realtime", "daily", "weekly"] = "daily"
    is_active: bool = True
    notify_email: bool = True
    notify_in_app: bool = True
    notify_webhook: bool = False
    webhook_url: str | None = None


class AlertCreate(AlertFields):
    org_id: UUID
    name: str = Field(..., min_length=1, max_length=255)


class AlertUpdate(AlertFields):
    """Every field optional; only the ones sent are applied."""
    name: str | None = Field(None, min_length=1, max_length=255)
    frequency: Literal["realtime", "daily", "weekly"] | None = None
    is_active: bool | None = None
    notify_email: bool | None = None
    notify_in_app: bool | None = None
    notify_webhook: bool | None = None


class AlertResponse(BaseModel):
    id: UUID
    org_id: UUID
    user_id: UUID
    name: str
    description: str | None
    keyword: str | None
    category: str | None
    agency: str | None
    status_posted: bool | None
    status_forecasted: bool | None
    due_in_days: int | None
    min_amount: float | None
    max_amount: float | None
    frequency: str
    is_active: bool
    notify_email: bool
    notify_in_app: bool
    notify_webhook: bool
    webhook_url: str | None
    last_checked_at: datetime | None
    last_alert_sent_at: datetime | None
    alert_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AlertMatchResponse(BaseModel):
    id: UUID
    external_source: str
    external_id: str
    grant_title: str
    grant_agency: str | None
    grant_close_date: datetime | None
    matched_at: datetime
    notified_at: datetime | None
    viewed_at: datetime | None
    dismissed_at: datetime | None

    class Config:
        from_attributes = True


async def get_owned_alert(db: DbSession, alert_id: UUID, current_user: AuthUser) -> Alert:
    """Load an alert the caller created and can still see."""
    result = await db.execute(select(Alert).where(Alert.id == alert_id))
    alert = result.scalar_one_or_none()

    if not alert:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")

    if alert.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - You can only modify your own alerts",
        )

    await require_member(db, alert.org_id, current_user)
    return alert


@router.get("")
async def list_alerts(org_id: UUID, current_user: CurrentUser, db: DbSession):
    """List an organization's alerts, newest first."""
    await require_member(db, org_id, current_user)

    result = await db.execute(
        select(Alert)
        .where(Alert.org_id == org_id)
        .order_by(Alert.created_at.desc())
    )
    alerts = result.scalars().all()

    return {"alerts": [AlertResponse.model_validate(a) for a in alerts]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_alert(request: AlertCreate, current_user: CurrentUser, db: DbSession):
    """Create a saved alert for the caller."""
    await require_member(db, request.org_id, current_user)

    alert = Alert(user_id=current_user.id, **request.model_dump())
    db.add(alert)
    await db.commit()
    await db.refresh(alert)

    return {"alert": AlertResponse.model_validate(alert)}


@router.put("")
async def update_alert(alert_id: UUID, request: AlertUpdate, current_user: CurrentUser, db: DbSession):
    """Update an alert's criteria or channels."""
    alert = await get_owned_alert(db, alert_id, current_user)

    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(alert, key, value)
    alert.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(alert)

    return {"alert": AlertResponse.model_validate(alert)}


@router.delete("")
async def delete_alert(alert_id: UUID, current_user: CurrentUser, db: DbSession):
    """Delete an alert and its match history."""
    alert = await get_owned_alert(db, alert_id, current_user)

    await db.delete(alert)
    await db.commit()

    return {"success": True}


@router.get("/{alert_id}/matches")
async def list_alert_matches(
    alert_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    limit: int = 50,
):
    """Grants an alert has matched, most recent first."""
    result = await db.execute(select(Alert).where(Alert.id == alert_id))
    alert = result.scalar_one_or_none()

    if not alert:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")

    await require_member(db, alert.org_id, current_user)

    result = await db.execute(
        select(AlertMatch)
        .where(AlertMatch.alert_id == alert.id)
        .order_by(AlertMatch.matched_at.desc())
        .limit(limit)
    )
    matches = result.scalars().all()

    return {"matches": [AlertMatchResponse.model_validate(m) for m in matches]}
