from datetime import timedelta

import pytest

from grantcue.models.alert import Alert, AlertMatch
from grantcue.models.notification import InAppNotification
from grantcue.services.alert_candidates import select_candidates, watermark_for
from grantcue.services.alert_checker import run_alert_check


async def test_no_active_alerts(session_factory, http_client, now):
    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.message == "No active alerts found"
    assert summary.alerts_checked == 0
    assert summary.matches_created == 0
    assert summary.emails_queued == 0
    assert summary.alerts_with_matches == []


async def test_new_environment_grant_is_matched_and_emailed(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    alert = await seed.alert(org, user_id, name="Environment", category="environment")
    await seed.grant("EPA-2026-ENV-01", first_seen_at=now - timedelta(hours=2))

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.message == "Alert check completed"
    assert summary.alerts_checked == 1
    assert summary.matches_created == 1
    assert summary.emails_queued == 1
    assert summary.alerts_with_matches == [{"alert_name": "Environment", "matches_count": 1}]
    assert await seed.count(AlertMatch, AlertMatch.alert_id == alert.id) == 1


async def test_immediate_rerun_finds_nothing_new(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    await seed.alert(org, user_id, name="Environment", category="environment")
    await seed.grant("EPA-2026-ENV-01")

    await run_alert_check(session_factory, http_client, now=now)
    summary = await run_alert_check(session_factory, http_client, now=now + timedelta(seconds=5))

    assert summary.alerts_checked == 1
    assert summary.matches_created == 0
    assert summary.emails_queued == 0
    assert summary.alerts_with_matches == []


async def test_rerun_over_same_window_does_not_duplicate(session_factory, seed, http_client, now):
    """A second run that sees the same candidates records and notifies nothing."""
    org, user_id = await seed.org()
    alert = await seed.alert(org, user_id)
    await seed.grant("EPA-2026-ENV-01")

    await run_alert_check(session_factory, http_client, now=now)

    # Rewind the watermark as if an overlapping run had read it earlier
    async with session_factory() as db:
        stored = await db.get(Alert, alert.id)
        stored.last_checked_at = None
        await db.commit()

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 0
    assert await seed.count(AlertMatch, AlertMatch.alert_id == alert.id) == 1
    assert await seed.count(InAppNotification, InAppNotification.related_alert_id == alert.id) == 1


async def test_amount_filter_excludes_small_award(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    await seed.alert(org, user_id, min_amount=100000)
    await seed.grant("SMALL-01", award_ceiling=50000)

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 0
    assert await seed.count(AlertMatch) == 0


async def test_malformed_alert_does_not_stop_others(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    broken = await seed.alert(org, user_id, name="Broken", due_in_days=-3)
    healthy = await seed.alert(org, user_id, name="Healthy")
    await seed.grant("EPA-2026-ENV-01")

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.alerts_checked == 2
    assert summary.failed_alerts == [str(broken.id)]
    assert summary.alerts_with_matches == [{"alert_name": "Healthy", "matches_count": 1}]
    assert await seed.count(AlertMatch, AlertMatch.alert_id == healthy.id) == 1
    assert await seed.count(AlertMatch, AlertMatch.alert_id == broken.id) == 0


async def test_oversized_due_window_does_not_stop_others(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    huge = await seed.alert(org, user_id, name="Forever", due_in_days=3_000_000)
    healthy = await seed.alert(org, user_id, name="Healthy")
    await seed.grant("EPA-2026-ENV-01")

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.alerts_checked == 2
    assert summary.failed_alerts == [str(huge.id)]
    assert summary.alerts_with_matches == [{"alert_name": "Healthy", "matches_count": 1}]
    assert await seed.count(AlertMatch, AlertMatch.alert_id == healthy.id) == 1


async def test_zero_min_amount_matches_grants_without_a_ceiling(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    await seed.alert(org, user_id, name="Any size", min_amount=0, max_amount=0)
    await seed.grant("NSF-2026-OPEN", award_floor=None, award_ceiling=None)

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 1
    assert summary.failed_alerts == []


async def test_watermark_advances_even_without_matches(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    earlier = now - timedelta(hours=3)
    quiet = await seed.alert(org, user_id, name="Quiet", keyword="nothing matches this", last_checked_at=earlier)
    fresh = await seed.alert(org, user_id, name="Fresh")

    await run_alert_check(session_factory, http_client, now=now)

    assert (await seed.get(Alert, quiet.id)).last_checked_at == now
    assert (await seed.get(Alert, fresh.id)).last_checked_at == now


async def test_watermark_never_moves_backwards(session_factory, seed, now):
    org, user_id = await seed.org()
    later = now + timedelta(hours=1)
    alert = await seed.alert(org, user_id, last_checked_at=later)

    await select_candidates(session_factory, alert, now)

    assert (await seed.get(Alert, alert.id)).last_checked_at == later


def test_first_check_looks_back_a_bounded_window(now):
    alert = Alert(name="New")
    assert watermark_for(alert, now, lookback_hours=24) == now - timedelta(hours=24)

    alert.last_checked_at = now - timedelta(hours=1)
    assert watermark_for(alert, now) == now - timedelta(hours=1)


async def test_grants_older_than_lookback_are_ignored(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    await seed.alert(org, user_id)
    await seed.grant("OLD-01", first_seen_at=now - timedelta(days=3))
    await seed.grant("NEW-01", first_seen_at=now - timedelta(hours=1))

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 1
    [match] = await seed.all(AlertMatch)
    assert match.external_id == "NEW-01"


async def test_page_size_bounds_candidates(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    await seed.alert(org, user_id)
    for i in range(5):
        await seed.grant(f"BULK-{i}")

    summary = await run_alert_check(session_factory, http_client, now=now, page_size=3)

    assert summary.matches_created == 3


async def test_bookkeeping_after_notification(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    alert = await seed.alert(org, user_id, name="Environment")
    await seed.grant("EPA-2026-ENV-01")
    await seed.grant("EPA-2026-ENV-02")

    await run_alert_check(session_factory, http_client, now=now)

    stored = await seed.get(Alert, alert.id)
    assert stored.alert_count == 1
    assert stored.last_alert_sent_at == now

    matches = await seed.all(AlertMatch, AlertMatch.alert_id == alert.id)
    assert {m.notified_at for m in matches} == {now}

    [notification] = await seed.all(InAppNotification, InAppNotification.user_id == user_id)
    assert notification.type == "grant_alert"
    assert notification.title == '2 new grants for "Environment"'
    assert notification.action_url.endswith(f"/alerts/{alert.id}")


@pytest.mark.parametrize("notify_email,expected", [(True, 1), (False, 0)])
async def test_emails_queued_follows_alert_setting(session_factory, seed, http_client, now, notify_email, expected):
    org, user_id = await seed.org()
    await seed.alert(org, user_id, notify_email=notify_email, notify_in_app=False)
    await seed.grant("EPA-2026-ENV-01")

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 1
    assert summary.emails_queued == expected
    assert await seed.count(InAppNotification) == 0


async def test_missing_email_address_skips_email(session_factory, seed, http_client, now):
    org, user_id = await seed.org(email=None)
    await seed.alert(org, user_id)
    await seed.grant("EPA-2026-ENV-01")

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.matches_created == 1
    assert summary.emails_queued == 0


async def test_inactive_alerts_are_not_checked(session_factory, seed, http_client, now):
    org, user_id = await seed.org()
    paused = await seed.alert(org, user_id, is_active=False)
    await seed.grant("EPA-2026-ENV-01")

    summary = await run_alert_check(session_factory, http_client, now=now)

    assert summary.alerts_checked == 0
    assert (await seed.get(Alert, paused.id)).last_checked_at is None
