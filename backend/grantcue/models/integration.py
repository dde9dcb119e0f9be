"""Chat integration models (Slack, Microsoft Teams)."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, DateTime, ForeignKey, JSON, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from grantcue.db.database import Base

CHAT_INTEGRATION_TYPES = ("slack", "microsoft_teams")


class Integration(Base):
    """A connected chat workspace for an organization."""

    __tablename__ = "integrations"
    __table_args__ = (UniqueConstraint("org_id", "integration_type", name="uq_integrations_org_type"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    # Type: slack, microsoft_teams
    integration_type: Mapped[str] = mapped_column(String(50), nullable=False)

    webhook_url: Mapped[str | None] = mapped_column(String(500), nullable=True)  # Incoming webhook
    channel_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    channel_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    settings: Mapped[dict] = mapped_column(JSON, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    connected_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    connected_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Delivery stats
    last_triggered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0)
    failed_deliveries: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class IntegrationDelivery(Base):
    """One chat message attempt. Written once, never updated."""

    __tablename__ = "integration_deliveries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    integration_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("integrations.id", ondelete="CASCADE"), index=True)

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Status: delivered, failed
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    delivered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
