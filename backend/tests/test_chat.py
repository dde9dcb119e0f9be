import uuid
from datetime import datetime

import pytest
from pydantic import TypeAdapter

from grantcue.services.chat import format_date, format_slack_message, format_teams_message
from grantcue.services.events import (
    AlertMatched,
    DeadlineApproaching,
    GrantSaved,
    GrantUpdated,
    MatchSummary,
    NotificationEvent,
    TaskAssigned,
    build_webhook_payload,
)

ORG_ID = uuid.uuid4()
DEADLINE = datetime(2026, 3, 4, 17, 0)


def approaching() -> DeadlineApproaching:
    return DeadlineApproaching(
        org_id=ORG_ID,
        grant_id="saved-1",
        grant_title="Urban Forestry Grant",
        grant_agency="USDA Forest Service",
        grant_deadline=DEADLINE,
        action_url="https://grantcue.com/grants/saved-1",
        days_until_deadline=6,
    )


def test_format_date():
    assert format_date(DEADLINE) == "Mar 4, 2026"


def test_slack_message_for_deadline():
    message = format_slack_message(approaching())

    assert message["text"] == "Deadline approaching: Urban Forestry Grant"
    section, actions = message["blocks"]
    assert section["text"]["text"] == (
        "⚠️ *Deadline Approaching*\n\n*Urban Forestry Grant*\n_USDA Forest Service_\n📅 Deadline: Mar 4, 2026"
    )
    button = actions["elements"][0]
    assert button["text"]["text"] == "View Grant"
    assert button["url"] == "https://grantcue.com/grants/saved-1"


def test_slack_message_for_task():
    event = TaskAssigned(
        org_id=ORG_ID,
        grant_id="saved-1",
        grant_title="Urban Forestry Grant",
        action_url="https://grantcue.com/grants/saved-1",
        task_id="task-1",
        task_title="Draft budget narrative",
        assigned_to_name="Sam Ortiz",
    )

    message = format_slack_message(event)

    assert message["text"] == "Task assigned: Draft budget narrative"
    assert "Assigned to: Sam Ortiz" in message["blocks"][0]["text"]["text"]


def test_slack_message_for_alert_lists_first_five():
    event = AlertMatched(
        org_id=ORG_ID,
        alert_id=uuid.uuid4(),
        alert_name="Forestry",
        user_id=uuid.uuid4(),
        matches=[MatchSummary(external_id=f"F-{i}", title=f"Forest grant {i}") for i in range(7)],
        action_url="https://grantcue.com/alerts/1",
    )

    message = format_slack_message(event)
    text = message["blocks"][0]["text"]["text"]

    assert message["text"] == "7 new grants match Forestry"
    assert "Forest grant 4" in text
    assert "Forest grant 5" not in text
    assert text.endswith("…and 2 more")
    assert message["blocks"][1]["elements"][0]["text"]["text"] == "View Matches"


def test_teams_card():
    message = format_teams_message(approaching())

    [attachment] = message["attachments"]
    assert attachment["contentType"] == "application/vnd.microsoft.card.adaptive"
    card = attachment["content"]
    assert card["themeColor"] == "FFC107"
    assert card["body"][0]["text"] == "⚠️ Deadline Approaching"
    assert {"name": "Deadline", "value": "Mar 4, 2026"} in card["body"][2]["facts"]
    assert card["actions"][0]["url"] == "https://grantcue.com/grants/saved-1"


def test_teams_card_without_facts():
    event = GrantUpdated(
        org_id=ORG_ID,
        grant_id="saved-2",
        grant_title="Rural Energy Program",
        action_url="https://grantcue.com/grants/saved-2",
    )

    card = format_teams_message(event)["attachments"][0]["content"]

    assert [block["type"] for block in card["body"]] == ["TextBlock", "TextBlock"]


def test_unknown_event_type_is_rejected():
    with pytest.raises(TypeError):
        format_slack_message(object())


def test_events_parse_by_discriminator():
    event = TypeAdapter(NotificationEvent).validate_python({
        "event": "grant.deadline_approaching",
        "org_id": str(ORG_ID),
        "grant_id": "saved-1",
        "grant_title": "Urban Forestry Grant",
        "action_url": "https://grantcue.com/grants/saved-1",
        "days_until_deadline": 3,
    })

    assert isinstance(event, DeadlineApproaching)


def test_webhook_payload_omits_unset_fields():
    payload = build_webhook_payload(approaching(), datetime(2026, 2, 26, 9, 30))

    assert payload == {
        "event": "grant.deadline_approaching",
        "timestamp": "2026-02-26T09:30:00Z",
        "data": {
            "grant_id": "saved-1",
            "grant_title": "Urban Forestry Grant",
            "grant_agency": "USDA Forest Service",
            "grant_deadline": "2026-03-04T17:00:00",
            "action_url": "https://grantcue.com/grants/saved-1",
            "days_until_deadline": 6,
        },
    }


def test_webhook_payload_keeps_null_agency_and_deadline():
    event = GrantSaved(
        org_id=ORG_ID,
        grant_id="saved-2",
        grant_title="Tribal Broadband Grant",
        action_url="https://grantcue.com/grants/saved-2",
    )

    data = build_webhook_payload(event, datetime(2026, 2, 26, 9, 30))["data"]

    assert data == {
        "grant_id": "saved-2",
        "grant_title": "Tribal Broadband Grant",
        "grant_agency": None,
        "grant_deadline": None,
        "action_url": "https://grantcue.com/grants/saved-2",
    }
