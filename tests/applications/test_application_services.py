# tests/applications/test_application_services.py
from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.applications import schemas
from app.applications.services import ApplicationService
from app.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.database.enums import ApplicationStatus, JobStatus, UserRole
from conftest import Marketplace, create_application, create_job, create_user


def application_payload(**overrides: object) -> schemas.ApplicationCreate:
    data: dict[str, object] = {
        "message": "  Ich habe Zeit ab Montag.  ",
        "price": Decimal("2500"),
        "estimated_duration": 16,
    }
    data.update(overrides)
    return schemas.ApplicationCreate(**data)


@pytest.mark.asyncio
async def test_apply_creates_pending_application(
    db_session: AsyncSession, marketplace: Marketplace
) -> None:
    application = await ApplicationService(db_session).apply(
        marketplace.outsider, marketplace.job.id, application_payload()
    )

    assert application.status == ApplicationStatus.PENDING
    assert application.message == "Ich habe Zeit ab Montag."
    assert application.craftsman_id == marketplace.outsider.id


@pytest.mark.asyncio
async def test_apply_twice_is_conflict(db_session: AsyncSession, marketplace: Marketplace) -> None:
    with pytest.raises(ConflictError):
        await ApplicationService(db_session).apply(
            marketplace.craftsman, marketplace.job.id, application_payload()
        )


@pytest.mark.asyncio
async def test_apply_guards(db_session: AsyncSession, marketplace: Marketplace) -> None:
    service = ApplicationService(db_session)
    closed = await create_job(db_session, marketplace.customer, status=JobStatus.IN_PROGRESS)

    with pytest.raises(NotFoundError):
        await service.apply(marketplace.outsider, uuid4(), application_payload())
    with pytest.raises(ValidationError):
        await service.apply(marketplace.outsider, closed.id, application_payload())


@pytest.mark.asyncio
async def test_apply_to_own_job_is_forbidden(db_session: AsyncSession) -> None:
    # Role checks live in the route; the service still guards ownership
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    job = await create_job(db_session, customer)

    with pytest.raises(UnauthorizedError):
        await ApplicationService(db_session).apply(customer, job.id, application_payload())


def test_application_payload_validation() -> None:
    with pytest.raises(ValueError):
        application_payload(message="   ")
    with pytest.raises(ValueError):
        application_payload(price=Decimal("-1"))
    with pytest.raises(ValueError):
        schemas.ApplicationDecision(status=ApplicationStatus.COMPLETED)


@pytest.mark.asyncio
async def test_accept_moves_job_in_progress_and_blocks_second_accept(
    db_session: AsyncSession, marketplace: Marketplace
) -> None:
    service = ApplicationService(db_session)
    first, second = await service.list_for_job(marketplace.customer.id, marketplace.job.id)

    accepted = await service.decide(marketplace.customer.id, first.id, ApplicationStatus.ACCEPTED)

    assert accepted.status == ApplicationStatus.ACCEPTED
    assert accepted.job.status == JobStatus.IN_PROGRESS
    with pytest.raises(ValidationError):
        await service.decide(marketplace.customer.id, second.id, ApplicationStatus.ACCEPTED)
    with pytest.raises(ValidationError):
        await service.decide(marketplace.customer.id, first.id, ApplicationStatus.REJECTED)

    rejected = await service.decide(marketplace.customer.id, second.id, ApplicationStatus.REJECTED)
    assert rejected.status == ApplicationStatus.REJECTED


@pytest.mark.asyncio
async def test_only_owner_sees_and_decides(db_session: AsyncSession, marketplace: Marketplace) -> None:
    service = ApplicationService(db_session)
    applications = await service.list_for_job(marketplace.customer.id, marketplace.job.id)

    with pytest.raises(UnauthorizedError):
        await service.list_for_job(marketplace.craftsman.id, marketplace.job.id)
    with pytest.raises(UnauthorizedError):
        await service.decide(marketplace.craftsman.id, applications[0].id, ApplicationStatus.ACCEPTED)
    with pytest.raises(NotFoundError):
        await service.decide(marketplace.customer.id, uuid4(), ApplicationStatus.ACCEPTED)


@pytest.mark.asyncio
async def test_schedule_requires_accepted_own_application(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    craftsman = await create_user(db_session, UserRole.CRAFTSMAN, "Hans", "Werker")
    other = await create_user(db_session, UserRole.CRAFTSMAN, "Helga", "Maler")
    job = await create_job(db_session, customer)
    pending = await create_application(db_session, job, other)
    accepted = await create_application(
        db_session, await create_job(db_session, customer), craftsman, status=ApplicationStatus.ACCEPTED
    )
    slot = schemas.ApplicationSchedule(scheduled_date=date(2026, 11, 3), scheduled_time=time(9, 30))
    service = ApplicationService(db_session)

    with pytest.raises(ValidationError):
        await service.schedule(other.id, pending.id, slot)
    with pytest.raises(UnauthorizedError):
        await service.schedule(other.id, accepted.id, slot)

    scheduled = await service.schedule(craftsman.id, accepted.id, slot)
    assert scheduled.scheduled_date == date(2026, 11, 3)
    assert scheduled.scheduled_time == time(9, 30)


@pytest.mark.asyncio
async def test_schedule_lists_appointments_soonest_first(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    craftsman = await create_user(db_session, UserRole.CRAFTSMAN, "Hans", "Werker")
    later = await create_application(
        db_session,
        await create_job(db_session, customer, title="Später"),
        craftsman,
        status=ApplicationStatus.ACCEPTED,
        scheduled_date=date(2026, 12, 1),
    )
    sooner = await create_application(
        db_session,
        await create_job(db_session, customer, title="Früher"),
        craftsman,
        status=ApplicationStatus.ACCEPTED,
        scheduled_date=date(2026, 11, 1),
        scheduled_time=time(8, 0),
    )
    # accepted but not yet scheduled
    await create_application(
        db_session, await create_job(db_session, customer), craftsman, status=ApplicationStatus.ACCEPTED
    )
    # scheduled but pending
    await create_application(
        db_session,
        await create_job(db_session, customer),
        craftsman,
        scheduled_date=date(2026, 10, 20),
    )

    schedule = await ApplicationService(db_session).list_schedule(craftsman.id)

    assert [a.id for a in schedule] == [sooner.id, later.id]
    assert schedule[0].job.title == "Früher"


@pytest.mark.asyncio
async def test_list_for_craftsman_newest_first(db_session: AsyncSession, marketplace: Marketplace) -> None:
    second_job = await create_job(db_session, marketplace.customer, title="Garage streichen")
    newer = await create_application(db_session, second_job, marketplace.craftsman)

    applications = await ApplicationService(db_session).list_for_craftsman(marketplace.craftsman.id)

    assert applications[0].id == newer.id
    assert {a.job.id for a in applications} == {marketplace.job.id, second_job.id}
