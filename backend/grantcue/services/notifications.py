"""Notification fan-out.

One event goes out through every channel the organization has configured:
signed custom webhooks, Slack / Teams incoming webhooks, email, and in-app
notifications. Each channel fails on its own; nothing here retries.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.models.integration import CHAT_INTEGRATION_TYPES, Integration, IntegrationDelivery
from grantcue.models.notification import InAppNotification
from grantcue.models.user import UserProfile
from grantcue.models.webhook import Webhook, WebhookDelivery
from grantcue.services.chat import format_slack_message, format_teams_message
from grantcue.services.email import send_alert_matches_email
from grantcue.services.events import AlertMatched, NotificationEvent, build_webhook_payload

logger = logging.getLogger(__name__)

USER_AGENT = "GrantCue-Webhook/1.0"
SIGNATURE_HEADER = "X-Webhook-Signature"
RESPONSE_BODY_LIMIT = 1000
ERROR_BODY_LIMIT = 200


@dataclass
class DeliveryOutcome:
    """Result of one HTTP delivery attempt."""
    channel: str  # webhook, alert_webhook, slack, microsoft_teams
    target: str
    status: str = "pending"  # pending -> delivered | failed
    response_status: int | None = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == "delivered"


@dataclass
class DispatchReport:
    event_type: str
    webhooks: list[DeliveryOutcome] = field(default_factory=list)
    integrations: list[DeliveryOutcome] = field(default_factory=list)
    email_sent: bool = False
    in_app_created: bool = False


def sign_payload(body: str, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


async def _post_json(
    http_client: httpx.AsyncClient,
    outcome: DeliveryOutcome,
    url: str,
    body: str,
    headers: dict[str, str],
) -> str | None:
    """POST and fill in the outcome. Returns the response text, if any."""
    try:
        response = await http_client.post(url, content=body, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        outcome.status = "failed"
        outcome.error = str(e) or type(e).__name__
        return None

    outcome.response_status = response.status_code
    text = response.text
    if response.is_success:
        outcome.status = "delivered"
    else:
        outcome.status = "failed"
        outcome.error = f"HTTP {response.status_code}: {text[:ERROR_BODY_LIMIT]}"
    return text


async def deliver_webhook(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    webhook: Webhook,
    event: NotificationEvent,
    now: datetime,
) -> DeliveryOutcome:
    """Deliver to one custom webhook and record the attempt.

    Exactly one WebhookDelivery row and one counter bump per call,
    whether the endpoint answered or not.
    """
    payload = build_webhook_payload(event, now)
    body = json.dumps(payload)
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if webhook.secret:
        headers[SIGNATURE_HEADER] = sign_payload(body, webhook.secret)

    outcome = DeliveryOutcome(channel="webhook", target=str(webhook.id))
    response_text = await _post_json(http_client, outcome, webhook.url, body, headers)

    if outcome.delivered:
        logger.info("[Notifications] Webhook %s delivered with status %s", webhook.name, outcome.response_status)
    else:
        logger.warning("[Notifications] Webhook %s failed: %s", webhook.name, outcome.error)

    counters = {
        "last_triggered_at": now,
        "total_deliveries": Webhook.total_deliveries + 1,
    }
    if not outcome.delivered:
        counters["failed_deliveries"] = Webhook.failed_deliveries + 1

    try:
        async with session_factory() as db:
            db.add(WebhookDelivery(
                webhook_id=webhook.id,
                event_type=event.event,
                payload=payload,
                status=outcome.status,
                response_status=outcome.response_status,
                response_body=response_text[:RESPONSE_BODY_LIMIT] if response_text is not None else None,
                error_message=outcome.error,
                delivered_at=now,
            ))
            await db.execute(update(Webhook).where(Webhook.id == webhook.id).values(**counters))
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("[Notifications] Could not record delivery for webhook %s: %s", webhook.id, e)

    return outcome


async def deliver_alert_webhook(
    http_client: httpx.AsyncClient,
    event: AlertMatched,
    now: datetime,
) -> DeliveryOutcome:
    """POST to the URL saved on the alert itself. Unsigned, logged only."""
    body = json.dumps(build_webhook_payload(event, now))
    headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}

    outcome = DeliveryOutcome(channel="alert_webhook", target=str(event.alert_id))
    await _post_json(http_client, outcome, event.webhook_url, body, headers)

    if outcome.delivered:
        logger.info("[Notifications] Alert %s webhook delivered", event.alert_id)
    else:
        logger.warning("[Notifications] Alert %s webhook failed: %s", event.alert_id, outcome.error)
    return outcome


async def deliver_integration(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    integration: Integration,
    event: NotificationEvent,
    now: datetime,
) -> DeliveryOutcome:
    """Post a formatted chat message and record the attempt."""
    if integration.integration_type == "slack":
        message = format_slack_message(event)
    else:
        message = format_teams_message(event)

    outcome = DeliveryOutcome(channel=integration.integration_type, target=str(integration.id))
    await _post_json(
        http_client,
        outcome,
        integration.webhook_url,
        json.dumps(message),
        {"Content-Type": "application/json"},
    )

    if outcome.delivered:
        logger.info("[Notifications] %s notification sent for org %s", integration.integration_type, integration.org_id)
    else:
        logger.warning("[Notifications] %s notification failed: %s", integration.integration_type, outcome.error)

    counters = {
        "last_triggered_at": now,
        "total_deliveries": Integration.total_deliveries + 1,
    }
    if not outcome.delivered:
        counters["failed_deliveries"] = Integration.failed_deliveries + 1

    try:
        async with session_factory() as db:
            db.add(IntegrationDelivery(
                integration_id=integration.id,
                event_type=event.event,
                status=outcome.status,
                response_status=outcome.response_status,
                error_message=outcome.error,
                delivered_at=now,
            ))
            await db.execute(update(Integration).where(Integration.id == integration.id).values(**counters))
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("[Notifications] Could not record delivery for integration %s: %s", integration.id, e)

    return outcome


async def _load_targets(
    session_factory: async_sessionmaker[AsyncSession],
    event: NotificationEvent,
) -> tuple[list[Webhook], list[Integration]]:
    webhooks: list[Webhook] = []
    integrations: list[Integration] = []

    async with session_factory() as db:
        try:
            result = await db.execute(
                select(Webhook)
                .where(Webhook.org_id == event.org_id)
                .where(Webhook.is_active == True)  # noqa: E712
            )
            webhooks = [w for w in result.scalars().all() if w.subscribes_to(event.event)]
        except SQLAlchemyError as e:
            logger.error("[Notifications] Error fetching webhooks for org %s: %s", event.org_id, e)

        try:
            result = await db.execute(
                select(Integration)
                .where(Integration.org_id == event.org_id)
                .where(Integration.is_active == True)  # noqa: E712
                .where(Integration.integration_type.in_(CHAT_INTEGRATION_TYPES))
            )
            integrations = [i for i in result.scalars().all() if i.webhook_url]
        except SQLAlchemyError as e:
            logger.error("[Notifications] Error fetching integrations for org %s: %s", event.org_id, e)

    return webhooks, integrations


async def _send_alert_email(
    session_factory: async_sessionmaker[AsyncSession],
    event: AlertMatched,
) -> bool:
    try:
        async with session_factory() as db:
            result = await db.execute(select(UserProfile).where(UserProfile.user_id == event.user_id))
            profile = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error("[Notifications] Could not look up email for user %s: %s", event.user_id, e)
        return False

    if not profile or not profile.email:
        logger.warning("[Notifications] No email address for user %s, skipping email for alert %s", event.user_id, event.alert_id)
        return False

    return await send_alert_matches_email(
        profile.email,
        profile.full_name or "there",
        event.alert_name,
        event.matches,
        event.action_url,
    )


async def _create_in_app(
    session_factory: async_sessionmaker[AsyncSession],
    event: AlertMatched,
    now: datetime,
) -> bool:
    count = event.matches_count
    titles = ", ".join(m.title for m in event.matches[:3])
    if count > 3:
        titles += f" and {count - 3} more"

    try:
        async with session_factory() as db:
            db.add(InAppNotification(
                user_id=event.user_id,
                org_id=event.org_id,
                type="grant_alert",
                title=f"{count} new grant{'s' if count != 1 else ''} for \"{event.alert_name}\"",
                message=titles,
                related_alert_id=event.alert_id,
                action_url=event.action_url,
                action_label="View matches",
                created_at=now,
            ))
            await db.commit()
        return True
    except SQLAlchemyError as e:
        logger.error("[Notifications] Could not create in-app notification for alert %s: %s", event.alert_id, e)
        return False


async def dispatch_event(
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    event: NotificationEvent,
    now: datetime | None = None,
) -> DispatchReport:
    """Send one event through every configured channel."""
    now = now or datetime.utcnow()
    report = DispatchReport(event_type=event.event)
    is_alert = isinstance(event, AlertMatched)

    webhooks, integrations = await _load_targets(session_factory, event)

    deliveries = [deliver_webhook(session_factory, http_client, w, event, now) for w in webhooks]
    if is_alert and event.webhook_url:
        deliveries.append(deliver_alert_webhook(http_client, event, now))

    if deliveries:
        logger.info("[Notifications] Sending to %d webhooks for event %s", len(deliveries), event.event)
        results = await asyncio.gather(*deliveries, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error("[Notifications] Webhook delivery crashed: %r", result)
            else:
                report.webhooks.append(result)

    for integration in integrations:
        report.integrations.append(
            await deliver_integration(session_factory, http_client, integration, event, now)
        )

    if is_alert:
        if event.notify_email:
            report.email_sent = await _send_alert_email(session_factory, event)
        if event.notify_in_app:
            report.in_app_created = await _create_in_app(session_factory, event, now)

    return report
