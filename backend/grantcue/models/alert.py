"""Grant alert models - saved searches and the grants they matched."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from grantcue.db.database import Base


class Alert(Base):
    """A saved standing query against the grant catalog."""

    __tablename__ = "grant_alerts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Search criteria - all optional
    keyword: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    agency: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status_posted: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    status_forecasted: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    due_in_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    max_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)

    # Frequency: realtime, daily, weekly
    frequency: Mapped[str] = mapped_column(String(20), default="daily")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Notification channels
    notify_email: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_in_app: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_webhook: Mapped[bool] = mapped_column(Boolean, default=False)
    webhook_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Written only by the matching run
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_alert_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    alert_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    matches: Mapped[list["AlertMatch"]] = relationship(
        back_populates="alert",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class AlertMatch(Base):
    """A catalog grant an alert has already surfaced."""

    __tablename__ = "grant_alert_matches"
    __table_args__ = (UniqueConstraint("alert_id", "external_id", name="uq_grant_alert_matches_alert_external"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    alert_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("grant_alerts.id", ondelete="CASCADE"), index=True)
    org_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    # Grant snapshot
    external_source: Mapped[str] = mapped_column(String(50), default="grants_gov")
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    grant_title: Mapped[str] = mapped_column(Text, nullable=False)
    grant_agency: Mapped[str | None] = mapped_column(String(255), nullable=True)
    grant_close_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Tracking
    matched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    dismissed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    alert: Mapped["Alert"] = relationship(back_populates="matches")
