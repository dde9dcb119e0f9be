from datetime import timedelta

import pytest
from sqlalchemy import select

from grantcue.errors import CriteriaError
from grantcue.models.alert import Alert
from grantcue.models.grant import CatalogGrant
from grantcue.services.alert_filters import compile_alert_filters


async def matching_ids(session_factory, alert, now):
    async with session_factory() as db:
        result = await db.execute(select(CatalogGrant).where(*compile_alert_filters(alert, now)))
        return sorted(g.external_id for g in result.scalars().all())


def test_empty_criteria_only_checks_active_and_status(now):
    clauses = compile_alert_filters(Alert(name="Everything"), now)
    assert len(clauses) == 2


@pytest.mark.parametrize("days", [-1, -30])
def test_negative_due_in_days_is_rejected(now, days):
    with pytest.raises(CriteriaError) as exc:
        compile_alert_filters(Alert(name="Broken", due_in_days=days), now)
    assert exc.value.field == "due_in_days"


def test_zero_due_in_days_means_no_window(now):
    with_zero = compile_alert_filters(Alert(name="Zero", due_in_days=0), now)
    without = compile_alert_filters(Alert(name="None"), now)
    assert len(with_zero) == len(without)


def test_oversized_due_in_days_is_rejected(now):
    with pytest.raises(CriteriaError) as exc:
        compile_alert_filters(Alert(name="Forever", due_in_days=3_000_000), now)
    assert exc.value.field == "due_in_days"


def test_zero_amounts_mean_no_bound(now):
    with_zero = compile_alert_filters(Alert(name="Zero", min_amount=0, max_amount=0), now)
    without = compile_alert_filters(Alert(name="None"), now)
    assert len(with_zero) == len(without)


@pytest.mark.parametrize("field,value", [("min_amount", -5), ("max_amount", "lots"), ("min_amount", True)])
def test_bad_amounts_are_rejected(now, field, value):
    with pytest.raises(CriteriaError):
        compile_alert_filters(Alert(name="Broken", **{field: value}), now)


async def test_min_amount_excludes_smaller_ceilings(session_factory, seed, now):
    await seed.grant("small", award_ceiling=50000)
    await seed.grant("large", award_ceiling=500000)

    alert = Alert(name="Big awards", min_amount=100000)
    assert await matching_ids(session_factory, alert, now) == ["large"]


async def test_max_amount_compares_against_floor(session_factory, seed, now):
    await seed.grant("cheap", award_floor=5000)
    await seed.grant("pricey", award_floor=200000)

    alert = Alert(name="Small awards", max_amount=10000)
    assert await matching_ids(session_factory, alert, now) == ["cheap"]


async def test_keyword_is_case_insensitive_across_fields(session_factory, seed, now):
    await seed.grant("by-title", title="Wetland Restoration Program")
    await seed.grant("by-agency", title="Something else", agency="Office of WETLAND Policy")
    await seed.grant("by-number", title="Other", opportunity_number="WETLAND-2026-01")
    await seed.grant("unrelated", title="Broadband Expansion")

    alert = Alert(name="Wetlands", keyword="  wetland ")
    assert await matching_ids(session_factory, alert, now) == ["by-agency", "by-number", "by-title"]


async def test_category_and_agency(session_factory, seed, now):
    await seed.grant("epa-env")
    await seed.grant("epa-health", funding_category="health")
    await seed.grant("noaa-env", agency="National Oceanic and Atmospheric Administration")

    alert = Alert(name="EPA environment", category="environment", agency="protection")
    assert await matching_ids(session_factory, alert, now) == ["epa-env"]


async def test_status_flags(session_factory, seed, now):
    await seed.grant("posted")
    await seed.grant("forecasted", opportunity_status="forecasted")
    await seed.grant("closed", opportunity_status="closed")

    assert await matching_ids(session_factory, Alert(name="Posted", status_posted=True, status_forecasted=False), now) == ["posted"]
    assert await matching_ids(session_factory, Alert(name="Forecast", status_posted=False, status_forecasted=True), now) == ["forecasted"]
    # Neither flag falls back to both open statuses
    assert await matching_ids(session_factory, Alert(name="Open", status_posted=False, status_forecasted=False), now) == ["forecasted", "posted"]


async def test_due_in_days_window(session_factory, seed, now):
    await seed.grant("soon", close_date=now + timedelta(days=5))
    await seed.grant("later", close_date=now + timedelta(days=45))
    await seed.grant("closed", close_date=now - timedelta(days=1))

    alert = Alert(name="Due soon", due_in_days=30)
    assert await matching_ids(session_factory, alert, now) == ["soon"]


async def test_inactive_grants_never_match(session_factory, seed, now):
    await seed.grant("live")
    await seed.grant("withdrawn", is_active=False)

    assert await matching_ids(session_factory, Alert(name="All"), now) == ["live"]
