"""API routes."""

from grantcue.api.routes import alerts, cron, integrations, notifications, webhooks

__all__ = ["alerts", "cron", "integrations", "notifications", "webhooks"]
