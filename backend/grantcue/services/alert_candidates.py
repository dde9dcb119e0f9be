"""Select catalog grants first seen since an alert's last check."""

from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.models.alert import Alert
from grantcue.models.grant import CatalogGrant
from grantcue.services.alert_filters import compile_alert_filters


def watermark_for(alert: Alert, now: datetime, lookback_hours: int = 24) -> datetime:
    """Lower bound on `first_seen_at` for this alert's next query.

    A never-checked alert only looks back `lookback_hours`, not at the
    whole catalog.
    """
    if alert.last_checked_at:
        return alert.last_checked_at
    return now - timedelta(hours=lookback_hours)


async def select_candidates(
    session_factory: async_sessionmaker[AsyncSession],
    alert: Alert,
    now: datetime,
    page_size: int = 50,
    lookback_hours: int = 24,
) -> list[CatalogGrant]:
    """Fetch fresh matching grants and advance the alert's watermark.

    The watermark moves to `now` whenever the query succeeds, even if no
    grants came back and regardless of what happens to them downstream.
    It never moves backwards.
    """
    clauses = compile_alert_filters(alert, now)
    since = watermark_for(alert, now, lookback_hours)

    query = (
        select(CatalogGrant)
        .where(*clauses)
        .where(CatalogGrant.first_seen_at >= since)
        .limit(page_size)
    )

    advanced_to = max(now, alert.last_checked_at) if alert.last_checked_at else now

    async with session_factory() as db:
        result = await db.execute(query)
        grants = list(result.scalars().all())

        await db.execute(
            update(Alert)
            .where(Alert.id == alert.id)
            .values(last_checked_at=advanced_to)
        )
        await db.commit()

    alert.last_checked_at = advanced_to
    return grants
