import threading

import resend

from grantcue.config import settings
from grantcue.services.email import send_email


async def test_without_api_key_email_is_only_logged(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "")

    assert await send_email("dana@example.org", "New matches", "<p>Hi</p>") is True


async def test_resend_call_runs_off_the_event_loop(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append((params, threading.current_thread()))
        return {"id": "email-1"}

    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    monkeypatch.setattr(resend.Emails, "send", fake_send)

    assert await send_email("dana@example.org", "New matches", "<p>Hi</p>") is True

    params, thread = sent[0]
    assert params["to"] == "dana@example.org"
    assert params["subject"] == "New matches"
    assert params["from"] == settings.from_email
    assert thread is not threading.main_thread()


async def test_resend_failure_returns_false(monkeypatch):
    def failing_send(params):
        raise RuntimeError("Resend API unavailable")

    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    monkeypatch.setattr(resend.Emails, "send", failing_send)

    assert await send_email("dana@example.org", "New matches", "<p>Hi</p>") is False
