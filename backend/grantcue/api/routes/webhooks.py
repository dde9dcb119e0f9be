"""Custom webhook routes."""

from datetime import datetime
from urllib.parse import urlparse
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select

from grantcue.api.deps import CurrentUser, DbSession, require_member
from grantcue.models.webhook import DEFAULT_WEBHOOK_EVENTS, Webhook, WebhookDelivery
from grantcue.services.events import EVENT_TYPES

router = APIRouter()


# Schemas
class WebhookCreate(BaseModel):
    org_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    url: str
    secret: str | None = None
    events: list[str] = Field(default_factory=lambda: list(DEFAULT_WEBHOOK_EVENTS))


class WebhookUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    url: str | None = None
    secret: str | None = None
    events: list[str] | None = None
    is_active: bool | None = None


class WebhookResponse(BaseModel):
    id: UUID
    org_id: UUID
    name: str
    url: str
    has_secret: bool
    events: list[str]
    is_active: bool
    last_triggered_at: datetime | None
    total_deliveries: int
    failed_deliveries: int
    created_at: datetime


class DeliveryResponse(BaseModel):
    id: UUID
    event_type: str
    status: str
    response_status: int | None
    error_message: str | None
    delivered_at: datetime

    class Config:
        from_attributes = True


def webhook_response(webhook: Webhook) -> WebhookResponse:
    # Secret is write-only
    return WebhookResponse(
        id=webhook.id,
        org_id=webhook.org_id,
        name=webhook.name,
        url=webhook.url,
        has_secret=bool(webhook.secret),
        events=webhook.events or [],
        is_active=webhook.is_active,
        last_triggered_at=webhook.last_triggered_at,
        total_deliveries=webhook.total_deliveries,
        failed_deliveries=webhook.failed_deliveries,
        created_at=webhook.created_at,
    )


def validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid URL format")


def validate_events(events: list[str]) -> None:
    unknown = [e for e in events if e not in EVENT_TYPES]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown event types: {', '.join(unknown)}",
        )


async def get_webhook(db: DbSession, webhook_id: UUID) -> Webhook:
    result = await db.execute(select(Webhook).where(Webhook.id == webhook_id))
    webhook = result.scalar_one_or_none()
    if not webhook:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
    return webhook


@router.get("")
async def list_webhooks(org_id: UUID, current_user: CurrentUser, db: DbSession):
    """List an organization's webhooks."""
    await require_member(db, org_id, current_user)

    result = await db.execute(
        select(Webhook)
        .where(Webhook.org_id == org_id)
        .order_by(Webhook.created_at.desc())
    )

    return {"webhooks": [webhook_response(w) for w in result.scalars().all()]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_webhook(request: WebhookCreate, current_user: CurrentUser, db: DbSession):
    """Register a webhook (admins only)."""
    await require_member(db, request.org_id, current_user, admin=True)
    validate_url(request.url)
    validate_events(request.events)

    webhook = Webhook(
        org_id=request.org_id,
        name=request.name,
        url=request.url,
        secret=request.secret or None,
        events=request.events,
        created_by=current_user.id,
    )
    db.add(webhook)
    await db.commit()
    await db.refresh(webhook)

    return {"webhook": webhook_response(webhook)}


@router.patch("")
async def update_webhook(id: UUID, request: WebhookUpdate, current_user: CurrentUser, db: DbSession):
    """Update a webhook (admins only)."""
    webhook = await get_webhook(db, id)
    await require_member(db, webhook.org_id, current_user, admin=True)

    updates = request.model_dump(exclude_unset=True)
    if updates.get("url") is not None:
        validate_url(updates["url"])
    if updates.get("events") is not None:
        validate_events(updates["events"])

    for key, value in updates.items():
        if value is None and key != "secret":
            continue
        setattr(webhook, key, value)
    webhook.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(webhook)

    return {"webhook": webhook_response(webhook)}


@router.delete("")
async def delete_webhook(id: UUID, current_user: CurrentUser, db: DbSession):
    """Delete a webhook and its delivery log (admins only)."""
    webhook = await get_webhook(db, id)
    await require_member(db, webhook.org_id, current_user, admin=True)

    await db.delete(webhook)
    await db.commit()

    return {"success": True}


@router.get("/{webhook_id}/deliveries")
async def list_deliveries(
    webhook_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    limit: int = 50,
):
    """Recent delivery attempts for a webhook."""
    webhook = await get_webhook(db, webhook_id)
    await require_member(db, webhook.org_id, current_user)

    result = await db.execute(
        select(WebhookDelivery)
        .where(WebhookDelivery.webhook_id == webhook.id)
        .order_by(WebhookDelivery.delivered_at.desc())
        .limit(limit)
    )

    return {"deliveries": [DeliveryResponse.model_validate(d) for d in result.scalars().all()]}
