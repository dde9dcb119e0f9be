"""Notification events.

Each event kind is its own model carrying exactly the fields that kind
needs. `NotificationEvent` is the union the fan-out accepts; pydantic picks
the variant from the `event` field when parsing.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

GRANT_EVENT_TYPES = [
    "grant.saved",
    "grant.updated",
    "grant.task_assigned",
    "grant.deadline_approaching",
    "grant.deadline_passed",
]
ALERT_MATCHED = "alert.matched"
EVENT_TYPES = GRANT_EVENT_TYPES + [ALERT_MATCHED]


class _GrantEvent(BaseModel):
    org_id: uuid.UUID
    grant_id: str
    grant_title: str
    grant_agency: str | None = None
    grant_deadline: datetime | None = None
    action_url: str

    def webhook_data(self) -> dict:
        data = self.model_dump(mode="json", exclude={"event", "org_id"}, exclude_none=True)
        # Receivers always get agency and deadline, null when unknown
        data.setdefault("grant_agency", None)
        data.setdefault("grant_deadline", None)
        return data


class GrantSaved(_GrantEvent):
    event: Literal["grant.saved"] = "grant.saved"
    status: str | None = None


class GrantUpdated(_GrantEvent):
    event: Literal["grant.updated"] = "grant.updated"
    status: str | None = None


class TaskAssigned(_GrantEvent):
    event: Literal["grant.task_assigned"] = "grant.task_assigned"
    task_id: str
    task_title: str | None = None
    assigned_to_id: str | None = None
    assigned_to_name: str | None = None


class DeadlineApproaching(_GrantEvent):
    event: Literal["grant.deadline_approaching"] = "grant.deadline_approaching"
    status: str | None = None
    days_until_deadline: int


class DeadlinePassed(_GrantEvent):
    event: Literal["grant.deadline_passed"] = "grant.deadline_passed"
    status: str | None = None
    days_overdue: int


class MatchSummary(BaseModel):
    external_id: str
    title: str
    agency: str | None = None
    close_date: datetime | None = None


class AlertMatched(BaseModel):
    """New catalog grants surfaced by a saved alert."""

    event: Literal["alert.matched"] = "alert.matched"
    org_id: uuid.UUID
    alert_id: uuid.UUID
    alert_name: str
    user_id: uuid.UUID
    notify_email: bool = True
    notify_in_app: bool = True
    webhook_url: str | None = None
    matches: list[MatchSummary]
    action_url: str

    @property
    def matches_count(self) -> int:
        return len(self.matches)

    def webhook_data(self) -> dict:
        return {
            "alert_id": str(self.alert_id),
            "alert_name": self.alert_name,
            "matches_count": self.matches_count,
            "matches": [m.model_dump(mode="json") for m in self.matches],
            "action_url": self.action_url,
        }


NotificationEvent = Annotated[
    Union[GrantSaved, GrantUpdated, TaskAssigned, DeadlineApproaching, DeadlinePassed, AlertMatched],
    Field(discriminator="event"),
]


def build_webhook_payload(event: NotificationEvent, timestamp: datetime) -> dict:
    """The JSON body posted to webhook endpoints."""
    return {
        "event": event.event,
        "timestamp": timestamp.isoformat() + "Z",
        "data": event.webhook_data(),
    }
