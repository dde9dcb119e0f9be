"""Grant models - the shared catalog and each organization's saved pipeline."""

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from grantcue.db.database import Base


class CatalogGrant(Base):
    """A funding opportunity pulled in by the ingestion job.

    Read-only here: rows are written by the sync process, alerts only
    query them.
    """

    __tablename__ = "grants_catalog"
    __table_args__ = (UniqueConstraint("source_key", "external_id", name="uq_grants_catalog_source_external"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Source identifiers, e.g. grants_gov / "HHS-2025-ACF-001"
    source_key: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    agency: Mapped[str | None] = mapped_column(String(255), nullable=True)
    opportunity_number: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Financial info
    award_floor: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    award_ceiling: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)

    funding_category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Status: forecasted, posted, closed, archived
    opportunity_status: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)

    # Dates
    posted_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    close_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    source_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Freshness watermark for alert matching
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SavedGrant(Base):
    """A grant an organization is tracking in its pipeline."""

    __tablename__ = "org_grants_saved"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    external_source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    agency: Mapped[str | None] = mapped_column(String(255), nullable=True)
    close_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Stage: researching, drafting, submitted, awarded, declined, archived
    status: Mapped[str] = mapped_column(String(50), default="researching")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
