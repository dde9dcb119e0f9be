"""Record alert matches exactly once per (alert, grant)."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.models.alert import Alert, AlertMatch
from grantcue.models.grant import CatalogGrant

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


@dataclass
class NewMatch:
    """Display fields of a freshly recorded match."""
    external_id: str
    title: str
    agency: str | None = None
    close_date: datetime | None = None


@dataclass
class Inserted:
    match: NewMatch


@dataclass
class AlreadyExists:
    external_id: str


@dataclass
class Failed:
    external_id: str
    reason: str


RecordResult = Inserted | AlreadyExists | Failed


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the integrity error comes from a uniqueness constraint."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


async def record_match(
    session_factory: async_sessionmaker[AsyncSession],
    alert: Alert,
    grant: CatalogGrant,
    now: datetime,
) -> RecordResult:
    """Insert one match in its own transaction.

    A duplicate (alert_id, external_id) means an earlier or concurrent run
    already recorded it; that is reported, not raised.
    """
    match = AlertMatch(
        alert_id=alert.id,
        org_id=alert.org_id,
        external_source=grant.source_key or "grants_gov",
        external_id=grant.external_id,
        grant_title=grant.title,
        grant_agency=grant.agency,
        grant_close_date=grant.close_date,
        matched_at=now,
    )

    async with session_factory() as db:
        db.add(match)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if is_unique_violation(e):
                return AlreadyExists(external_id=grant.external_id)
            logger.error("Error creating match for grant %s on alert %s: %s", grant.external_id, alert.id, e.orig)
            return Failed(external_id=grant.external_id, reason=str(e.orig))
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Error creating match for grant %s on alert %s: %s", grant.external_id, alert.id, e)
            return Failed(external_id=grant.external_id, reason=str(e))

    return Inserted(
        NewMatch(
            external_id=grant.external_id,
            title=grant.title,
            agency=grant.agency,
            close_date=grant.close_date,
        )
    )


async def record_matches(
    session_factory: async_sessionmaker[AsyncSession],
    alert: Alert,
    grants: list[CatalogGrant],
    now: datetime,
) -> list[NewMatch]:
    """Record every candidate and return only the ones that are new."""
    new_matches = []
    for grant in grants:
        result = await record_match(session_factory, alert, grant, now)
        if isinstance(result, Inserted):
            new_matches.append(result.match)
    return new_matches
