"""Scheduled triggers - alert matching, deadline reminders, test sends."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, TypeAdapter

from grantcue.api.deps import CurrentUser, DbSession, HttpClient, Store, require_member, verify_cron_auth
from grantcue.config import settings
from grantcue.errors import ConfigurationError
from grantcue.services.alert_checker import run_alert_check
from grantcue.services.deadline_checker import run_deadline_check
from grantcue.services.events import GRANT_EVENT_TYPES, NotificationEvent
from grantcue.services.notifications import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter()


# Schemas
class AlertMatchCount(BaseModel):
    alert_name: str
    matches_count: int


class AlertCheckResponse(BaseModel):
    message: str
    alerts_checked: int
    matches_created: int
    emails_queued: int
    alerts_with_matches: list[AlertMatchCount]


class DeadlineCheckResponse(BaseModel):
    message: str
    grants_checked: int
    approaching_notifications: int
    passed_notifications: int
    timestamp: datetime


class TestNotificationResponse(BaseModel):
    success: bool
    message: str
    org_id: str
    event: str
    webhooks_delivered: int
    webhooks_failed: int
    integrations_delivered: int
    integrations_failed: int


@router.api_route(
    "/alerts/check",
    methods=["GET", "POST"],
    response_model=AlertCheckResponse,
    dependencies=[Depends(verify_cron_auth)],
)
async def check_alerts(store: Store, http_client: HttpClient):
    """Match every active alert against newly seen catalog grants."""
    try:
        summary = await run_alert_check(store, http_client)
    except ConfigurationError:
        raise
    except Exception:
        logger.exception("Alert check failed")
        return JSONResponse(status_code=500, content={"error": "Alert check failed"})

    return AlertCheckResponse(
        message=summary.message,
        alerts_checked=summary.alerts_checked,
        matches_created=summary.matches_created,
        emails_queued=summary.emails_queued,
        alerts_with_matches=[AlertMatchCount(**a) for a in summary.alerts_with_matches],
    )


@router.api_route(
    "/cron/check-deadlines",
    methods=["GET", "POST"],
    response_model=DeadlineCheckResponse,
    dependencies=[Depends(verify_cron_auth)],
)
async def check_deadlines(store: Store, http_client: HttpClient):
    """Send deadline approaching / passed notifications."""
    now = datetime.utcnow()
    try:
        summary = await run_deadline_check(store, http_client, now=now)
    except ConfigurationError:
        raise
    except Exception:
        logger.exception("Deadline check failed")
        return JSONResponse(status_code=500, content={"error": "Deadline check failed"})

    return DeadlineCheckResponse(
        message="Deadline check completed",
        grants_checked=summary.grants_checked,
        approaching_notifications=summary.approaching_notifications,
        passed_notifications=summary.passed_notifications,
        timestamp=now,
    )


_event_adapter = TypeAdapter(NotificationEvent)


def sample_event(event_type: str, org_id: UUID) -> NotificationEvent:
    """A made-up grant event of the given type for checking delivery."""
    return _event_adapter.validate_python({
        "event": event_type,
        "org_id": org_id,
        "grant_id": "test-grant-123",
        "grant_title": "Test Grant: Community Development Block Grant",
        "grant_agency": "Department of Housing and Urban Development",
        "grant_deadline": datetime.utcnow() + timedelta(days=30),
        "action_url": f"{settings.frontend_url}/pipeline",
        "status": "researching",
        "task_id": "test-task-456",
        "task_title": "Draft project narrative",
        "assigned_to_name": "Test User",
        "days_until_deadline": 30,
        "days_overdue": 1,
    })


@router.api_route("/test-notifications", methods=["GET", "POST"], response_model=TestNotificationResponse)
async def test_notifications(
    org_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    store: Store,
    http_client: HttpClient,
    event: str = "grant.saved",
):
    """Send a sample event through the organization's webhooks and chat apps."""
    if event not in GRANT_EVENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid event type. Must be one of: {', '.join(GRANT_EVENT_TYPES)}",
        )

    await require_member(db, org_id, current_user, admin=True)

    report = await dispatch_event(store, http_client, sample_event(event, org_id))

    return TestNotificationResponse(
        success=True,
        message=f"Test notification sent for event: {event}",
        org_id=str(org_id),
        event=event,
        webhooks_delivered=sum(1 for o in report.webhooks if o.delivered),
        webhooks_failed=sum(1 for o in report.webhooks if not o.delivered),
        integrations_delivered=sum(1 for o in report.integrations if o.delivered),
        integrations_failed=sum(1 for o in report.integrations if not o.delivered),
    )
