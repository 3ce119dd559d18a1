# tests/jobs/test_job_services.py
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.database.enums import ApplicationStatus, JobStatus, JobUrgency, UserRole
from app.jobs import schemas
from app.jobs.services import JobService
from conftest import Marketplace, create_application, create_job, create_user


def job_payload(**overrides: object) -> schemas.JobCreate:
    data: dict[str, object] = {
        "title": "Badezimmer komplett sanieren",
        "description": "Altes Bad raus, neue Fliesen, Dusche bodengleich, Waschtisch und WC neu.",
        "category": "Sanitär",
        "location": {"street": "Lindenweg 12", "postal_code": "80331", "city": "München"},
        "budget_min": Decimal("4000"),
        "budget_max": Decimal("9000"),
        "urgency": JobUrgency.HIGH,
    }
    data.update(overrides)
    return schemas.JobCreate(**data)


@pytest.mark.asyncio
async def test_create_job_starts_open_with_customer_info(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")

    job = await JobService(db_session).create_job(customer, job_payload())

    assert job.status == JobStatus.OPEN
    assert job.customer.id == customer.id
    assert job.location.city == "München"
    assert job.application_count == 0


@pytest.mark.asyncio
async def test_create_job_rejects_craftsman(db_session: AsyncSession) -> None:
    craftsman = await create_user(db_session, UserRole.CRAFTSMAN, "Hans", "Werker")

    with pytest.raises(UnauthorizedError):
        await JobService(db_session).create_job(craftsman, job_payload())


def test_job_create_validates_category_and_budget() -> None:
    with pytest.raises(ValueError):
        job_payload(category="Raumfahrt")
    with pytest.raises(ValueError):
        job_payload(budget_min=Decimal("500"), budget_max=Decimal("100"))


@pytest.mark.asyncio
async def test_list_open_jobs_filters_and_counts(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    await create_job(db_session, customer, title="Küche renovieren", category="Bau")
    await create_job(
        db_session, customer, title="Steckdosen verlegen", category="Elektro", urgency=JobUrgency.HIGH
    )
    await create_job(db_session, customer, title="Hecke schneiden", category="Garten")
    await create_job(db_session, customer, title="Altes Dach", category="Bau", status=JobStatus.COMPLETED)

    service = JobService(db_session)
    everything, total = await service.list_open_jobs(schemas.JobFilter())
    by_category, _ = await service.list_open_jobs(schemas.JobFilter(category="Bau"))
    by_urgency, _ = await service.list_open_jobs(schemas.JobFilter(urgency=JobUrgency.HIGH))
    by_search, _ = await service.list_open_jobs(schemas.JobFilter(search="  hecke "))

    assert total == 3
    # newest first
    assert [j.title for j in everything] == ["Hecke schneiden", "Steckdosen verlegen", "Küche renovieren"]
    assert [j.title for j in by_category] == ["Küche renovieren"]
    assert [j.title for j in by_urgency] == ["Steckdosen verlegen"]
    assert [j.title for j in by_search] == ["Hecke schneiden"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    await create_job(db_session, customer, title="Fenster tauschen")

    jobs, total = await JobService(db_session).list_open_jobs(schemas.JobFilter(search="%"))

    assert jobs == [] and total == 0


@pytest.mark.asyncio
async def test_list_open_jobs_paginates(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    for i in range(3):
        await create_job(db_session, customer, title=f"Auftrag Nummer {i}")

    page, total = await JobService(db_session).list_open_jobs(schemas.JobFilter(), skip=1, limit=1)

    assert total == 3
    assert [j.title for j in page] == ["Auftrag Nummer 1"]


@pytest.mark.asyncio
async def test_list_jobs_for_user_covers_owned_and_applied(
    db_session: AsyncSession, marketplace: Marketplace
) -> None:
    service = JobService(db_session)

    owned = await service.list_jobs_for_user(marketplace.customer.id)
    applied = await service.list_jobs_for_user(marketplace.craftsman.id)
    unrelated = await service.list_jobs_for_user(marketplace.outsider.id)

    assert [j.id for j in owned] == [marketplace.job.id]
    assert owned[0].application_count == 2
    assert [j.id for j in applied] == [marketplace.job.id]
    assert unrelated == []


@pytest.mark.asyncio
async def test_get_job_detail_unknown_is_404(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await JobService(db_session).get_job_detail(uuid4())


@pytest.mark.asyncio
async def test_status_lifecycle_completes_accepted_application(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    craftsman = await create_user(db_session, UserRole.CRAFTSMAN, "Hans", "Werker")
    job = await create_job(db_session, customer)
    application = await create_application(
        db_session, job, craftsman, status=ApplicationStatus.ACCEPTED
    )
    service = JobService(db_session)

    in_progress = await service.update_status(customer.id, job.id, JobStatus.IN_PROGRESS)
    completed = await service.update_status(craftsman.id, job.id, JobStatus.COMPLETED)

    assert in_progress.status == JobStatus.IN_PROGRESS
    assert completed.status == JobStatus.COMPLETED
    await db_session.refresh(application)
    assert application.status == ApplicationStatus.COMPLETED


@pytest.mark.asyncio
async def test_status_rejects_skipping_and_going_back(db_session: AsyncSession) -> None:
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    open_job = await create_job(db_session, customer)
    done_job = await create_job(db_session, customer, status=JobStatus.COMPLETED)
    service = JobService(db_session)

    with pytest.raises(ValidationError):
        await service.update_status(customer.id, open_job.id, JobStatus.COMPLETED)
    with pytest.raises(ValidationError):
        await service.update_status(customer.id, done_job.id, JobStatus.OPEN)


@pytest.mark.asyncio
async def test_status_change_by_pending_applicant_or_outsider_is_403(
    db_session: AsyncSession, marketplace: Marketplace
) -> None:
    service = JobService(db_session)

    with pytest.raises(UnauthorizedError):
        await service.update_status(marketplace.craftsman.id, marketplace.job.id, JobStatus.IN_PROGRESS)
    with pytest.raises(UnauthorizedError):
        await service.update_status(marketplace.outsider.id, marketplace.job.id, JobStatus.IN_PROGRESS)
