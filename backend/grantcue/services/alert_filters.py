"""Turn a saved alert's criteria into catalog query clauses."""

import numbers
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

from grantcue.errors import CriteriaError
from grantcue.models.alert import Alert
from grantcue.models.grant import CatalogGrant

OPEN_STATUSES = ("posted", "forecasted")


def compile_alert_filters(alert: Alert, now: datetime) -> list[ColumnElement[bool]]:
    """Build the AND-ed clauses that select catalog grants for an alert.

    Every criterion is optional. An alert with none of them set still
    matches every active posted/forecasted grant.

    Raises CriteriaError when a criterion cannot be applied; callers fail
    only that alert.
    """
    clauses: list[ColumnElement[bool]] = [CatalogGrant.is_active == True]  # noqa: E712

    keyword = (alert.keyword or "").strip()
    if keyword:
        pattern = f"%{keyword}%"
        clauses.append(
            or_(
                CatalogGrant.title.ilike(pattern),
                CatalogGrant.description.ilike(pattern),
                CatalogGrant.agency.ilike(pattern),
                CatalogGrant.opportunity_number.ilike(pattern),
            )
        )

    if alert.category:
        clauses.append(CatalogGrant.funding_category == alert.category)

    if alert.agency:
        clauses.append(CatalogGrant.agency.ilike(f"%{alert.agency}%"))

    clauses.append(CatalogGrant.opportunity_status.in_(_statuses(alert)))

    if alert.due_in_days:
        days = _positive_int("due_in_days", alert.due_in_days)
        try:
            window_end = now + timedelta(days=days)
        except (OverflowError, ValueError):
            raise CriteriaError("due_in_days", days, "is too far in the future")
        clauses.append(CatalogGrant.close_date >= now)
        clauses.append(CatalogGrant.close_date <= window_end)

    # Zero amounts mean no bound
    if alert.min_amount:
        clauses.append(CatalogGrant.award_ceiling >= _amount("min_amount", alert.min_amount))

    if alert.max_amount:
        clauses.append(CatalogGrant.award_floor <= _amount("max_amount", alert.max_amount))

    return clauses


def _statuses(alert: Alert) -> list[str]:
    statuses = []
    if alert.status_posted:
        statuses.append("posted")
    if alert.status_forecasted:
        statuses.append("forecasted")
    return statuses or list(OPEN_STATUSES)


def _positive_int(field: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CriteriaError(field, value, "must be a whole number of days")
    if value < 0:
        raise CriteriaError(field, value, "must not be negative")
    return value


def _amount(field: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise CriteriaError(field, value, "must be a number")
    if value < 0:
        raise CriteriaError(field, value, "must not be negative")
    return float(value)
