"""Alert matching task."""

import asyncio

import httpx
from celery import shared_task

from grantcue.config import settings
from grantcue.db.database import create_session_factory
from grantcue.services.alert_checker import run_alert_check


@shared_task(bind=True)
def check_all_alerts(self):
    """Hourly run over every active alert."""
    return asyncio.run(_check_all_alerts_async())


async def _check_all_alerts_async():
    session_factory = create_session_factory(settings.database_url)
    engine = session_factory.kw["bind"]

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
            summary = await run_alert_check(session_factory, http_client)
    finally:
        await engine.dispose()

    return {
        "message": summary.message,
        "alerts_checked": summary.alerts_checked,
        "matches_created": summary.matches_created,
        "emails_queued": summary.emails_queued,
        "alerts_with_matches": summary.alerts_with_matches,
        "failed_alerts": summary.failed_alerts,
    }
