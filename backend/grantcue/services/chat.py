"""Message formatting for Slack and Microsoft Teams."""

from datetime import datetime

from grantcue.services.events import (
    AlertMatched,
    DeadlineApproaching,
    DeadlinePassed,
    GrantSaved,
    GrantUpdated,
    NotificationEvent,
    TaskAssigned,
)


def format_date(value: datetime) -> str:
    """e.g. 'Mar 4, 2026'."""
    return f"{value:%b} {value.day}, {value.year}"


def _grant_lines(event, deadline_label: str = "Deadline") -> str:
    text = f"*{event.grant_title}*"
    if event.grant_agency:
        text += f"\n_{event.grant_agency}_"
    if event.grant_deadline:
        text += f"\n📅 {deadline_label}: {format_date(event.grant_deadline)}"
    return text


def _headline(event: NotificationEvent) -> tuple[str, str, str]:
    """(emoji, heading, fallback text) for an event."""
    if isinstance(event, GrantSaved):
        return "✅", "New Grant Saved", f"New grant saved: {event.grant_title}"
    if isinstance(event, GrantUpdated):
        return "📝", "Grant Updated", f"Grant updated: {event.grant_title}"
    if isinstance(event, TaskAssigned):
        return "👤", "Task Assigned", f"Task assigned: {event.task_title or 'New task'}"
    if isinstance(event, DeadlineApproaching):
        return "⚠️", "Deadline Approaching", f"Deadline approaching: {event.grant_title}"
    if isinstance(event, DeadlinePassed):
        return "🚨", "Deadline Passed", f"Deadline passed: {event.grant_title}"
    if isinstance(event, AlertMatched):
        return "🔔", "New Grant Matches", f"{event.matches_count} new grants match {event.alert_name}"
    raise TypeError(f"Unhandled notification event: {type(event).__name__}")


def _slack_body(event: NotificationEvent) -> str:
    if isinstance(event, (GrantSaved, DeadlineApproaching)):
        return _grant_lines(event)
    if isinstance(event, DeadlinePassed):
        return _grant_lines(event, deadline_label="Deadline was")
    if isinstance(event, GrantUpdated):
        text = f"*{event.grant_title}*"
        if event.grant_agency:
            text += f"\n_{event.grant_agency}_"
        return text
    if isinstance(event, TaskAssigned):
        text = f"*{event.task_title or 'New task'}*\nGrant: {event.grant_title}"
        if event.assigned_to_name:
            text += f"\nAssigned to: {event.assigned_to_name}"
        return text
    if isinstance(event, AlertMatched):
        lines = [f"Alert: *{event.alert_name}*"]
        for match in event.matches[:5]:
            line = f"• {match.title}"
            if match.agency:
                line += f" _({match.agency})_"
            lines.append(line)
        if event.matches_count > 5:
            lines.append(f"…and {event.matches_count - 5} more")
        return "\n".join(lines)
    raise TypeError(f"Unhandled notification event: {type(event).__name__}")


def format_slack_message(event: NotificationEvent) -> dict:
    """Slack incoming-webhook payload with a section and a button."""
    emoji, heading, text = _headline(event)
    button_label = "View Matches" if isinstance(event, AlertMatched) else "View Grant"

    return {
        "text": text,
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"{emoji} *{heading}*\n\n{_slack_body(event)}",
                },
            },
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": button_label, "emoji": True},
                        "url": event.action_url,
                        "style": "primary",
                    }
                ],
            },
        ],
    }


TEAMS_COLORS = {
    "grant.saved": "28A745",
    "grant.updated": "0078D4",
    "grant.task_assigned": "7C3AED",
    "grant.deadline_approaching": "FFC107",
    "grant.deadline_passed": "DC3545",
    "alert.matched": "0078D4",
}


def _teams_facts(event: NotificationEvent) -> list[dict]:
    if isinstance(event, AlertMatched):
        return [
            {"name": "Alert", "value": event.alert_name},
            {"name": "New Matches", "value": str(event.matches_count)},
        ]

    facts = []
    if event.grant_agency:
        facts.append({"name": "Agency", "value": event.grant_agency})
    if event.grant_deadline:
        facts.append({"name": "Deadline", "value": format_date(event.grant_deadline)})
    if isinstance(event, TaskAssigned) and event.assigned_to_name:
        facts.append({"name": "Assigned To", "value": event.assigned_to_name})
    return facts


def format_teams_message(event: NotificationEvent) -> dict:
    """Teams incoming-webhook payload wrapping an Adaptive Card."""
    emoji, heading, _ = _headline(event)

    if isinstance(event, TaskAssigned):
        text = f"{event.task_title or 'New task'} - {event.grant_title}"
    elif isinstance(event, AlertMatched):
        text = "\n".join(m.title for m in event.matches[:5])
    else:
        text = event.grant_title

    body = [
        {"type": "TextBlock", "size": "Large", "weight": "Bolder", "text": f"{emoji} {heading}", "wrap": True},
        {"type": "TextBlock", "text": text, "wrap": True, "size": "Medium"},
    ]
    facts = _teams_facts(event)
    if facts:
        body.append({"type": "FactSet", "facts": facts})

    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "content": {
                    "type": "AdaptiveCard",
                    "body": body,
                    "actions": [
                        {
                            "type": "Action.OpenUrl",
                            "title": "View Matches" if isinstance(event, AlertMatched) else "View Grant",
                            "url": event.action_url,
                        }
                    ],
                    "msteams": {"width": "Full"},
                    "themeColor": TEAMS_COLORS.get(event.event, "0078D4"),
                    "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
                    "version": "1.4",
                },
            }
        ],
    }
