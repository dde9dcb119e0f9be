"""Grant alert matching run.

Loads every active alert, finds catalog grants first seen since the
alert's last check, records the new ones and notifies. Alerts are handled
one at a time and one alert's failure never stops the rest.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.config import settings
from grantcue.errors import CriteriaError
from grantcue.models.alert import Alert, AlertMatch
from grantcue.services.alert_candidates import select_candidates
from grantcue.services.events import AlertMatched, MatchSummary
from grantcue.services.match_recorder import NewMatch, record_matches
from grantcue.services.notifications import DispatchReport, dispatch_event

logger = logging.getLogger(__name__)


@dataclass
class AlertCheckSummary:
    alerts_checked: int = 0
    matches_created: int = 0
    emails_queued: int = 0
    alerts_with_matches: list[dict] = field(default_factory=list)
    failed_alerts: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.alerts_checked:
            return "No active alerts found"
        return "Alert check completed"


def alert_action_url(alert: Alert) -> str:
    return f"{settings.frontend_url}/alerts/{alert.id}"


async def load_active_alerts(session_factory: async_sessionmaker[AsyncSession]) -> list[Alert]:
    """Active alerts, least recently checked first."""
    async with session_factory() as db:
        result = await db.execute(
            select(Alert)
            .where(Alert.is_active == True)  # noqa: E712
            .order_by(Alert.last_checked_at.asc().nulls_first(), Alert.created_at.asc())
        )
        return list(result.scalars().all())


async def notify_new_matches(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    alert: Alert,
    new_matches: list[NewMatch],
    now: datetime,
) -> DispatchReport:
    """Fan out one event for an alert's new matches and stamp the bookkeeping."""
    event = AlertMatched(
        org_id=alert.org_id,
        alert_id=alert.id,
        alert_name=alert.name,
        user_id=alert.user_id,
        notify_email=alert.notify_email,
        notify_in_app=alert.notify_in_app,
        webhook_url=alert.webhook_url if alert.notify_webhook else None,
        matches=[
            MatchSummary(
                external_id=m.external_id,
                title=m.title,
                agency=m.agency,
                close_date=m.close_date,
            )
            for m in new_matches
        ],
        action_url=alert_action_url(alert),
    )

    report = await dispatch_event(session_factory, http_client, event, now)

    try:
        async with session_factory() as db:
            await db.execute(
                update(Alert)
                .where(Alert.id == alert.id)
                .values(last_alert_sent_at=now, alert_count=Alert.alert_count + 1)
            )
            await db.execute(
                update(AlertMatch)
                .where(AlertMatch.alert_id == alert.id)
                .where(AlertMatch.external_id.in_([m.external_id for m in new_matches]))
                .values(notified_at=now)
            )
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("Could not update notification stats for alert %s: %s", alert.id, e)

    return report


async def check_alert(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    alert: Alert,
    now: datetime,
    page_size: int,
    lookback_hours: int,
) -> tuple[list[NewMatch], DispatchReport | None]:
    grants = await select_candidates(session_factory, alert, now, page_size, lookback_hours)
    if not grants:
        return [], None

    new_matches = await record_matches(session_factory, alert, grants, now)
    if not new_matches:
        return [], None

    report = await notify_new_matches(session_factory, http_client, alert, new_matches, now)
    return new_matches, report


async def run_alert_check(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    now: datetime | None = None,
    page_size: int | None = None,
    lookback_hours: int | None = None,
) -> AlertCheckSummary:
    """Evaluate every active alert once.

    Safe to re-run: grants already recorded for an alert are not matched
    or notified again.
    """
    now = now or datetime.utcnow()
    page_size = page_size or settings.alert_page_size
    lookback_hours = lookback_hours or settings.alert_lookback_hours

    alerts = await load_active_alerts(session_factory)
    summary = AlertCheckSummary(alerts_checked=len(alerts))

    for alert in alerts:
        try:
            new_matches, report = await check_alert(
                session_factory, http_client, alert, now, page_size, lookback_hours
            )
        except CriteriaError as e:
            logger.warning("Skipping alert %s: %s", alert.id, e)
            summary.failed_alerts.append(str(alert.id))
            continue
        except SQLAlchemyError as e:
            logger.error("Error processing alert %s: %s", alert.id, e)
            summary.failed_alerts.append(str(alert.id))
            continue
        except Exception:
            logger.exception("Unexpected error processing alert %s", alert.id)
            summary.failed_alerts.append(str(alert.id))
            continue

        if not new_matches:
            continue

        summary.matches_created += len(new_matches)
        summary.alerts_with_matches.append({
            "alert_name": alert.name,
            "matches_count": len(new_matches),
        })
        if report and report.email_sent:
            summary.emails_queued += 1

    logger.info(
        "[Alert Check] %d alerts checked, %d matches created, %d emails queued, %d failed",
        summary.alerts_checked,
        summary.matches_created,
        summary.emails_queued,
        len(summary.failed_alerts),
    )
    return summary
