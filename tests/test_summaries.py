import pytest
from datetime import date
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.core.exceptions import InputValidationError
from app.models.progress import WeeklySummary
from app.models.user import User
from app.services import trend_service
from app.services.summary_service import SummaryService

WEEK = date(2024, 3, 4)


async def _summary_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(WeeklySummary.id)))).scalar_one()


@pytest.mark.asyncio
async def test_weekly_summary_counts_distinct_exercises(db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    squat, bench = catalog["squat"], catalog["bench"]
    await log_session(vanessa, date(2024, 3, 4), 60, [(squat, 80.0), (bench, 50.0)])
    await log_session(vanessa, date(2024, 3, 6), 45, [(squat, 85.0)])

    summary = await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, date(2024, 3, 7))
    assert summary.week_start == WEEK
    assert summary.sessions == 2
    assert summary.total_min == 105
    assert summary.total_exercises == 2


@pytest.mark.asyncio
async def test_empty_week_is_never_persisted(db_session: AsyncSession, users):
    vanessa, _ = users
    assert await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, WEEK) is None
    assert await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, WEEK) is None
    assert await _summary_count(db_session) == 0


@pytest.mark.asyncio
async def test_stored_summary_is_returned_unchanged(db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    await log_session(vanessa, date(2024, 3, 4), 60, [(catalog["squat"], 80.0)])
    first = await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, WEEK)

    # A late session does not change the memoized row
    await log_session(vanessa, date(2024, 3, 8), 30, [(catalog["bench"], 40.0)])
    second = await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, WEEK)

    assert second.id == first.id
    assert second.sessions == 1
    assert second.total_min == 60
    assert await _summary_count(db_session) == 1


@pytest.mark.asyncio
async def test_concurrent_creation_returns_stored_row(db_session: AsyncSession, users, catalog, log_session, monkeypatch):
    vanessa, _ = users
    await log_session(vanessa, date(2024, 3, 4), 60, [(catalog["squat"], 80.0)])
    db_session.add(WeeklySummary(user_id=vanessa.id, week_start=WEEK, sessions=1, total_min=60, total_exercises=1))
    await db_session.commit()
    stored_id = (await db_session.execute(select(WeeklySummary.id))).scalar_one()

    # Simulate losing the race: the first lookup misses, the insert then conflicts.
    real_find = SummaryService.find_weekly_summary
    calls = {"count": 0}

    async def racing_find(db, user_id, week_start):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await real_find(db, user_id, week_start)

    monkeypatch.setattr(SummaryService, "find_weekly_summary", racing_find)

    summary = await SummaryService.get_or_create_weekly_summary(db_session, vanessa.id, WEEK)
    assert summary.id == stored_id
    assert await _summary_count(db_session) == 1


@pytest.mark.asyncio
async def test_monthly_summary_sums_weekly_distinct_counts(db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    squat = catalog["squat"]
    await log_session(vanessa, date(2024, 3, 5), 60, [(squat, 80.0)])
    await log_session(vanessa, date(2024, 3, 12), 90, [(squat, 82.5)])
    await log_session(vanessa, date(2024, 3, 14), 45, [(squat, 85.0)])

    data = await SummaryService.get_monthly_summary_for(db_session, vanessa.id, 2024, 3)
    assert data.month_start == date(2024, 3, 1)
    assert data.month_end == date(2024, 3, 31)
    assert data.total_sessions == 3
    assert data.total_exercises == 2
    assert data.total_hours == 3.3
    assert data.avg_sessions_per_week == 1.5
    assert data.record_sessions == 2
    assert data.record_minutes == 135
    assert [s["week_start"] for s in data.weekly_summaries] == [date(2024, 3, 4), date(2024, 3, 11)]


@pytest.mark.asyncio
async def test_monthly_summary_without_sessions(db_session: AsyncSession, users):
    vanessa, _ = users
    data = await SummaryService.get_monthly_summary_for(db_session, vanessa.id, 2024, 3)
    assert data.total_sessions == 0
    assert data.avg_sessions_per_week == 0.0
    assert data.weekly_summaries == []


@pytest.mark.asyncio
async def test_annual_summary(db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    squat, bench = catalog["squat"], catalog["bench"]
    await log_session(vanessa, date(2024, 3, 4), 60, [(squat, 80.0), (bench, 50.0)])
    await log_session(vanessa, date(2024, 3, 20), 30, [(squat, 82.0)])
    await log_session(vanessa, date(2024, 5, 2), 90, [(bench, 55.0)])

    data = await SummaryService.get_annual_summary(db_session, vanessa.id, 2024, today=date(2024, 6, 15))
    assert [m.month for m in data.monthly_data] == [1, 2, 3, 4, 5, 6]
    march = data.monthly_data[2]
    assert march.month_name == "March"
    assert march.total_sessions == 2
    assert march.total_exercises == 2
    assert march.total_hours == 1.5
    assert march.has_data is True
    assert data.monthly_data[0].has_data is False
    assert data.annual_stats.total_sessions == 3
    assert data.annual_stats.total_minutes == 180
    assert data.annual_stats.average_sessions_per_month == 1.5


@pytest.mark.asyncio
async def test_annual_summary_without_data(db_session: AsyncSession, users):
    vanessa, _ = users
    past = await SummaryService.get_annual_summary(db_session, vanessa.id, 2023, today=date(2024, 6, 15))
    assert len(past.monthly_data) == 12
    assert past.annual_stats.average_sessions_per_month == 0.0

    future = await SummaryService.get_annual_summary(db_session, vanessa.id, 2030, today=date(2024, 6, 15))
    assert future.monthly_data == []
    assert future.annual_stats.total_sessions == 0


@pytest.mark.asyncio
async def test_shared_weekly_summary(db_session: AsyncSession, users, catalog, log_session):
    vanessa, santiago = users
    squat = catalog["squat"]
    for day in (4, 6, 8, 9):
        await log_session(vanessa, date(2024, 3, day), 60, [(squat, 70.0)])
    for day in (4, 6, 8):
        await log_session(santiago, date(2024, 3, day), 45, [(squat, 100.0)])

    data = await SummaryService.get_shared_weekly_summary(db_session, date(2024, 3, 6))
    assert data.week_start == WEEK
    assert data.week_end == date(2024, 3, 10)
    assert data.same_days == 3
    assert data.same_day_percentage == 43
    assert data.total_sessions == 7
    assert data.total_min == 375
    assert [u.name for u in data.users] == ["Vanessa", "Santiago"]
    assert data.users[0].img == "/images/avatars/vanessa.png"
    assert data.users[1].img == "/images/avatars/santiago.png"
    assert data.users[1].same_days == 3


@pytest.mark.asyncio
async def test_shared_summary_requires_two_users(db_session: AsyncSession):
    db_session.add(User(name="Vanessa"))
    await db_session.commit()
    with pytest.raises(InputValidationError):
        await SummaryService.get_shared_weekly_summary(db_session, WEEK)


@pytest.mark.asyncio
async def test_weekly_report_endpoint(client: AsyncClient, db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    squat, bench = catalog["squat"], catalog["bench"]
    await log_session(vanessa, date(2024, 3, 4), 60, [(squat, 80.0), (bench, 50.0)])
    await log_session(vanessa, date(2024, 3, 7), 40, [(squat, 85.0)])
    for week, weight in [("2024-02-19", 71.0), ("2024-02-26", 70.5), ("2024-03-04", 70.0)]:
        await client.post(f"{settings.API_V1_STR}/users/{vanessa.id}/weights", json={"weight_kg": weight, "week_start": week})

    resp = await client.get(
        f"{settings.API_V1_STR}/users/{vanessa.id}/summaries/weekly",
        params={"week_start": "2024-03-06"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["week_range"] == {"start": "2024-03-04", "end": "2024-03-10"}
    assert data["summary"]["sessions"] == 2
    assert data["summary"]["total_exercises"] == 2
    assert data["top_exercises"] == [{"name": "Squat", "count": 2}, {"name": "Bench Press", "count": 1}]
    assert [e["week_start"] for e in data["weight_entries"]] == ["2024-03-04", "2024-02-26", "2024-02-19"]
    assert data["weight_projection"] == pytest.approx(70.0)

    empty = await client.get(
        f"{settings.API_V1_STR}/users/{vanessa.id}/summaries/weekly",
        params={"week_start": "2024-04-01"},
    )
    assert empty.status_code == 200
    assert empty.json()["data"]["summary"] is None
    assert await _summary_count(db_session) == 1


@pytest.mark.asyncio
async def test_summary_endpoints(client: AsyncClient, users, catalog, log_session):
    vanessa, santiago = users
    await log_session(vanessa, date(2024, 3, 4), 60, [(catalog["squat"], 80.0)])
    await log_session(santiago, date(2024, 3, 4), 30, [(catalog["bench"], 60.0)])

    monthly = await client.get(
        f"{settings.API_V1_STR}/users/{vanessa.id}/summaries/monthly",
        params={"year": 2024, "month": 3},
    )
    assert monthly.status_code == 200
    assert monthly.json()["data"]["total_sessions"] == 1

    bad_month = await client.get(
        f"{settings.API_V1_STR}/users/{vanessa.id}/summaries/monthly",
        params={"year": 2024, "month": 13},
    )
    assert bad_month.status_code == 422

    annual = await client.get(f"{settings.API_V1_STR}/users/{vanessa.id}/summaries/annual", params={"year": 2024})
    assert annual.status_code == 200
    assert annual.json()["data"]["annual_stats"]["total_sessions"] == 1

    shared = await client.get(f"{settings.API_V1_STR}/summaries/shared/weekly", params={"week_start": "2024-03-04"})
    assert shared.status_code == 200
    assert shared.json()["data"]["same_day_percentage"] == 14


@pytest.mark.asyncio
async def test_annual_and_monthly_weight_rollup(db_session: AsyncSession, users, catalog, log_session):
    vanessa, _ = users
    await log_session(vanessa, date(2024, 3, 5), 60, [(catalog["squat"], 80.0)])
    await log_session(vanessa, date(2024, 3, 12), 40, [(catalog["bench"], 50.0)])
    for week, weight in [(date(2024, 3, 4), 70.0), (date(2024, 3, 11), 71.0), (date(2024, 9, 2), 72.0)]:
        await trend_service.register_weight_entry(vanessa.id, weight, db_session, week_start=week)

    data = await SummaryService.get_annual_summary(db_session, vanessa.id, 2024, today=date(2024, 6, 15))
    by_month = {m.month: m for m in data.monthly_data}

    # A future month with weigh-ins only stays in the result
    assert sorted(by_month) == [1, 2, 3, 4, 5, 6, 9]
    assert by_month[3].average_weight == pytest.approx(70.5)
    assert by_month[1].average_weight is None
    assert by_month[1].has_data is False
    assert by_month[9].has_data is True
    assert by_month[9].total_sessions == 0
    assert by_month[9].average_weight == pytest.approx(72.0)
    assert data.annual_stats.total_sessions == 2
    assert data.annual_stats.average_sessions_per_month == 1.0

    monthly = await SummaryService.get_monthly_summary_for(db_session, vanessa.id, 2024, 3)
    assert [(e["week_start"], e["weight_kg"]) for e in monthly.weight_entries] == [
        (date(2024, 3, 4), 70.0),
        (date(2024, 3, 11), 71.0),
    ]


@pytest.mark.asyncio
async def test_database_failure_returns_retryable_error(client: AsyncClient, users, monkeypatch):
    async def failing_shared_summary(db, week_start):
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    monkeypatch.setattr(SummaryService, "get_shared_weekly_summary", failing_shared_summary)

    resp = await client.get(
        f"{settings.API_V1_STR}/summaries/shared/weekly",
        params={"week_start": "2024-03-04"},
        headers={"X-Request-ID": "req-503"},
    )
    assert resp.status_code == 503
    assert resp.json() == {
        "detail": "Could not load data. Please try again.",
        "retryable": True,
        "request_id": "req-503",
    }
