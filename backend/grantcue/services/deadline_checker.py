"""Deadline reminders for grants in an organization's pipeline."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.config import settings
from grantcue.models.grant import SavedGrant
from grantcue.services.events import DeadlineApproaching, DeadlinePassed
from grantcue.services.notifications import dispatch_event

logger = logging.getLogger(__name__)

# Stages that no longer need deadline reminders
CLOSED_STAGES = ("archived", "declined", "awarded", "submitted")


@dataclass
class DeadlineCheckSummary:
    grants_checked: int = 0
    approaching_notifications: int = 0
    passed_notifications: int = 0


def grant_action_url(grant: SavedGrant) -> str:
    return f"{settings.frontend_url}/grants/{grant.id}"


def build_deadline_event(grant: SavedGrant, today: date, warning_days: int):
    """The event a saved grant's deadline calls for today, if any."""
    close_day = grant.close_date.date()
    fields = dict(
        org_id=grant.org_id,
        grant_id=str(grant.id),
        grant_title=grant.title,
        grant_agency=grant.agency,
        grant_deadline=grant.close_date,
        action_url=grant_action_url(grant),
        status=grant.status,
    )

    if close_day < today:
        return DeadlinePassed(days_overdue=(today - close_day).days, **fields)
    if close_day <= today + timedelta(days=warning_days):
        return DeadlineApproaching(days_until_deadline=(close_day - today).days, **fields)
    return None


async def run_deadline_check(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    now: datetime | None = None,
    warning_days: int | None = None,
) -> DeadlineCheckSummary:
    """Notify every organization about deadlines that passed or are close."""
    now = now or datetime.utcnow()
    today = now.date()
    warning_days = warning_days if warning_days is not None else settings.deadline_warning_days

    async with session_factory() as db:
        result = await db.execute(
            select(SavedGrant)
            .where(SavedGrant.close_date.is_not(None))
            .where(SavedGrant.status.not_in(CLOSED_STAGES))
        )
        grants = list(result.scalars().all())

    summary = DeadlineCheckSummary(grants_checked=len(grants))

    for grant in grants:
        event = build_deadline_event(grant, today, warning_days)
        if event is None:
            continue

        await dispatch_event(session_factory, http_client, event, now)
        if isinstance(event, DeadlinePassed):
            summary.passed_notifications += 1
        else:
            summary.approaching_notifications += 1
        logger.info("Sent %s notification for grant %s", event.event, grant.id)

    logger.info(
        "Deadline check completed: %d grants, %d approaching, %d passed",
        summary.grants_checked,
        summary.approaching_notifications,
        summary.passed_notifications,
    )
    return summary
