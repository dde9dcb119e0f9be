"""Chat integration routes (Slack, Microsoft Teams)."""

from datetime import datetime
from typing import Literal
from urllib.parse import urlparse
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select

from grantcue.api.deps import CurrentUser, DbSession, require_member
from grantcue.models.integration import Integration

router = APIRouter()


# Schemas
class IntegrationUpsert(BaseModel):
    org_id: UUID
    integration_type: Literal["slack", "microsoft_teams"]
    webhook_url: str
    channel_id: str | None = None
    channel_name: str | None = None
    settings: dict = {}


class IntegrationResponse(BaseModel):
    id: UUID
    org_id: UUID
    integration_type: str
    webhook_url: str | None
    channel_id: str | None
    channel_name: str | None
    settings: dict
    is_active: bool
    connected_at: datetime
    last_triggered_at: datetime | None
    total_deliveries: int
    failed_deliveries: int

    class Config:
        from_attributes = True


def validate_webhook_url(integration_type: str, url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook URL")

    if integration_type == "microsoft_teams" and not parsed.netloc.endswith("webhook.office.com"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Teams webhook URL. It should contain 'webhook.office.com'",
        )


@router.get("")
async def list_integrations(org_id: UUID, current_user: CurrentUser, db: DbSession):
    """List an organization's connected chat apps."""
    await require_member(db, org_id, current_user)

    result = await db.execute(select(Integration).where(Integration.org_id == org_id))

    return {"integrations": [IntegrationResponse.model_validate(i) for i in result.scalars().all()]}


@router.post("")
async def upsert_integration(request: IntegrationUpsert, current_user: CurrentUser, db: DbSession):
    """Connect a chat app, or replace its settings if already connected (admins only)."""
    await require_member(db, request.org_id, current_user, admin=True)
    validate_webhook_url(request.integration_type, request.webhook_url)

    result = await db.execute(
        select(Integration)
        .where(Integration.org_id == request.org_id)
        .where(Integration.integration_type == request.integration_type)
    )
    integration = result.scalar_one_or_none()

    if not integration:
        integration = Integration(org_id=request.org_id, integration_type=request.integration_type)
        db.add(integration)

    integration.webhook_url = request.webhook_url
    integration.channel_id = request.channel_id
    integration.channel_name = request.channel_name
    integration.settings = request.settings
    integration.is_active = True
    integration.connected_by = current_user.id
    integration.connected_at = datetime.utcnow()

    await db.commit()
    await db.refresh(integration)

    return {"integration": IntegrationResponse.model_validate(integration)}


@router.delete("")
async def delete_integration(
    org_id: UUID,
    integration_type: Literal["slack", "microsoft_teams"],
    current_user: CurrentUser,
    db: DbSession,
):
    """Disconnect a chat app (admins only)."""
    await require_member(db, org_id, current_user, admin=True)

    result = await db.execute(
        select(Integration)
        .where(Integration.org_id == org_id)
        .where(Integration.integration_type == integration_type)
    )
    integration = result.scalar_one_or_none()

    if not integration:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found")

    await db.delete(integration)
    await db.commit()

    return {"success": True}
