"""Deadline reminder task."""

import asyncio

import httpx
from celery import shared_task

from grantcue.config import settings
from grantcue.db.database import create_session_factory
from grantcue.services.deadline_checker import run_deadline_check


@shared_task(bind=True)
def check_all_deadlines(self):
    """Daily deadline approaching / passed notifications."""
    return asyncio.run(_check_all_deadlines_async())


async def _check_all_deadlines_async():
    session_factory = create_session_factory(settings.database_url)

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
            summary = await run_deadline_check(session_factory, http_client)
    finally:
        await session_factory.kw["bind"].dispose()

    return {
        "grants_checked": summary.grants_checked,
        "approaching_notifications": summary.approaching_notifications,
        "passed_notifications": summary.passed_notifications,
    }
