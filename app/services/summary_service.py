"""Weekly / monthly / annual / shared workout summaries.

Weekly summaries are memoized in ``weekly_summaries``: the first request for a
(user, week) with at least one session persists the computed row, later
requests return the stored row untouched. Only the scheduled regeneration job
overwrites existing rows.
"""
import calendar
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import InputValidationError
from app.core.filters import SessionFilter
from app.database import dialect_insert
from app.models.fitness import Exercise, Session, SessionExercise
from app.models.progress import WeeklySummary, WeightEntry
from app.models.user import User
from app.services.calendar_service import (
    month_bounds,
    round_half_up,
    today_local,
    week_end_for,
    week_start_for,
    weeks_overlapping,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
TOP_EXERCISES_LIMIT = 5


@dataclass
class WeekStats:
    sessions: int
    total_min: int
    total_exercises: int
    training_days: set[date] = field(default_factory=set)


@dataclass
class MonthlySummaryData:
    month_start: date
    month_end: date
    total_sessions: int
    total_hours: float
    total_exercises: int
    avg_sessions_per_week: float
    record_sessions: int
    record_minutes: int
    weekly_summaries: list[dict]
    weight_entries: list[dict]


@dataclass
class MonthData:
    month: int
    month_name: str
    month_start: date
    total_sessions: int
    total_minutes: int
    total_hours: float
    total_exercises: int
    average_weight: float | None
    has_data: bool


@dataclass
class AnnualStats:
    total_sessions: int
    total_minutes: int
    total_hours: float
    total_exercises: int
    average_sessions_per_month: float


@dataclass
class AnnualSummaryData:
    year: int
    monthly_data: list[MonthData]
    annual_stats: AnnualStats


@dataclass
class SharedUserSummary:
    user_id: uuid.UUID
    name: str
    img: str
    sessions: int
    total_min: int
    total_exercises: int
    same_days: int = 0


@dataclass
class SharedSummaryData:
    week_start: date
    week_end: date
    total_sessions: int
    total_min: int
    total_exercises: int
    same_days: int
    same_day_percentage: int
    users: list[SharedUserSummary]


def compute_week_stats(sessions: list[Session]) -> WeekStats:
    exercise_ids = {entry.exercise_id for session in sessions for entry in session.exercises}
    return WeekStats(
        sessions=len(sessions),
        total_min=sum(session.duration_min for session in sessions),
        total_exercises=len(exercise_ids),
        training_days={session.date for session in sessions},
    )


def serialize_weekly_summary(summary: WeeklySummary) -> dict:
    return {
        "id": summary.id,
        "user_id": summary.user_id,
        "week_start": summary.week_start,
        "sessions": summary.sessions,
        "total_min": summary.total_min,
        "total_exercises": summary.total_exercises,
    }


class SummaryService:
    @staticmethod
    async def fetch_sessions(db: AsyncSession, user_id: uuid.UUID, start: date, end: date) -> list[Session]:
        stmt = SessionFilter(user_id=user_id, start_date=start, end_date=end).apply(select(Session))
        stmt = stmt.options(selectinload(Session.exercises)).order_by(Session.date)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def find_weekly_summary(db: AsyncSession, user_id: uuid.UUID, week_start: date) -> WeeklySummary | None:
        stmt = (
            select(WeeklySummary)
            .where(WeeklySummary.user_id == user_id, WeeklySummary.week_start == week_start_for(week_start))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def calculate_week_stats(db: AsyncSession, user_id: uuid.UUID, week_start: date) -> WeekStats:
        start = week_start_for(week_start)
        sessions = await SummaryService.fetch_sessions(db, user_id, start, week_end_for(start))
        return compute_week_stats(sessions)

    @staticmethod
    async def get_or_create_weekly_summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        week_start: date,
    ) -> WeeklySummary | None:
        """Return the memoized summary for the week, creating it on first use.

        Weeks without sessions yield ``None`` and nothing is stored. When two
        requests race on the same uncached week, the insert is a no-op for the
        loser and both end up reading the same stored row.
        """
        week_start = week_start_for(week_start)
        existing = await SummaryService.find_weekly_summary(db, user_id, week_start)
        if existing:
            return existing

        stats = await SummaryService.calculate_week_stats(db, user_id, week_start)
        if stats.sessions == 0:
            return None

        insert = dialect_insert(db)
        stmt = (
            insert(WeeklySummary)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                week_start=week_start,
                sessions=stats.sessions,
                total_min=stats.total_min,
                total_exercises=stats.total_exercises,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "week_start"])
            .returning(WeeklySummary.id)
        )
        created_id = (await db.execute(stmt)).scalar_one_or_none()
        await db.commit()
        if created_id is None:
            logger.info("Weekly summary for user %s week %s was stored concurrently", user_id, week_start)
        else:
            logger.info(
                "Created weekly summary for user %s week %s (sessions=%s)",
                user_id,
                week_start,
                stats.sessions,
            )
        return await SummaryService.find_weekly_summary(db, user_id, week_start)

    @staticmethod
    async def upsert_weekly_summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        week_start: date,
        stats: WeekStats,
    ) -> None:
        insert = dialect_insert(db)
        stmt = insert(WeeklySummary).values(
            id=uuid.uuid4(),
            user_id=user_id,
            week_start=week_start_for(week_start),
            sessions=stats.sessions,
            total_min=stats.total_min,
            total_exercises=stats.total_exercises,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "week_start"],
            set_={
                "sessions": stmt.excluded.sessions,
                "total_min": stmt.excluded.total_min,
                "total_exercises": stmt.excluded.total_exercises,
            },
        )
        await db.execute(stmt)

    @staticmethod
    async def get_top_exercises(
        db: AsyncSession,
        user_id: uuid.UUID,
        start: date,
        end: date,
        limit: int = TOP_EXERCISES_LIMIT,
    ) -> list[dict]:
        stmt = (
            select(Exercise.name)
            .select_from(SessionExercise)
            .join(Session, SessionExercise.session_id == Session.id)
            .join(Exercise, SessionExercise.exercise_id == Exercise.id)
            .where(Session.user_id == user_id, Session.date >= start, Session.date <= end)
            .order_by(Session.date, SessionExercise.order)
        )
        names = (await db.execute(stmt)).scalars().all()
        return [{"name": name, "count": count} for name, count in Counter(names).most_common(limit)]

    @staticmethod
    async def get_monthly_summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        month_start: date,
        month_end: date,
    ) -> MonthlySummaryData:
        summaries: list[WeeklySummary] = []
        for week_start in weeks_overlapping(month_start, month_end):
            summary = await SummaryService.get_or_create_weekly_summary(db, user_id, week_start)
            if summary:
                summaries.append(summary)

        total_sessions = sum(s.sessions for s in summaries)
        total_minutes = sum(s.total_min for s in summaries)

        weight_stmt = (
            select(WeightEntry)
            .where(
                WeightEntry.user_id == user_id,
                WeightEntry.week_start >= month_start,
                WeightEntry.week_start <= month_end,
            )
            .order_by(WeightEntry.week_start)
        )
        weight_entries = (await db.execute(weight_stmt)).scalars().all()

        return MonthlySummaryData(
            month_start=month_start,
            month_end=month_end,
            total_sessions=total_sessions,
            total_hours=round_half_up(total_minutes / 60),
            # Sum of weekly distinct counts: an exercise repeated in two weeks counts twice.
            total_exercises=sum(s.total_exercises for s in summaries),
            avg_sessions_per_week=round_half_up(total_sessions / len(summaries)) if summaries else 0.0,
            record_sessions=max((s.sessions for s in summaries), default=0),
            record_minutes=max((s.total_min for s in summaries), default=0),
            weekly_summaries=[serialize_weekly_summary(s) for s in summaries],
            weight_entries=[
                {"id": e.id, "week_start": e.week_start, "weight_kg": e.weight_kg} for e in weight_entries
            ],
        )

    @staticmethod
    async def get_monthly_summary_for(
        db: AsyncSession,
        user_id: uuid.UUID,
        year: int,
        month: int,
    ) -> MonthlySummaryData:
        month_start, month_end = month_bounds(year, month)
        return await SummaryService.get_monthly_summary(db, user_id, month_start, month_end)

    @staticmethod
    async def get_annual_summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        year: int,
        *,
        today: date | None = None,
    ) -> AnnualSummaryData:
        today = today or today_local()
        year_start, year_end = date(year, 1, 1), date(year, 12, 31)

        sessions = await SummaryService.fetch_sessions(db, user_id, year_start, year_end)
        sessions_by_month: dict[int, list[Session]] = defaultdict(list)
        for session in sessions:
            sessions_by_month[session.date.month].append(session)

        weight_stmt = select(WeightEntry).where(
            WeightEntry.user_id == user_id,
            WeightEntry.week_start >= year_start,
            WeightEntry.week_start <= year_end,
        )
        weights_by_month: dict[int, list[float]] = defaultdict(list)
        for entry in (await db.execute(weight_stmt)).scalars().all():
            weights_by_month[entry.week_start.month].append(entry.weight_kg)

        monthly_data: list[MonthData] = []
        for month in range(1, 13):
            month_sessions = sessions_by_month.get(month, [])
            weights = weights_by_month.get(month, [])
            stats = compute_week_stats(month_sessions)
            has_data = stats.sessions > 0 or len(weights) > 0
            month_start = date(year, month, 1)
            if month_start > today and not has_data:
                continue
            monthly_data.append(
                MonthData(
                    month=month,
                    month_name=calendar.month_name[month],
                    month_start=month_start,
                    total_sessions=stats.sessions,
                    total_minutes=stats.total_min,
                    total_hours=round_half_up(stats.total_min / 60),
                    total_exercises=stats.total_exercises,
                    average_weight=sum(weights) / len(weights) if weights else None,
                    has_data=has_data,
                )
            )

        total_sessions = sum(m.total_sessions for m in monthly_data)
        total_minutes = sum(m.total_minutes for m in monthly_data)
        months_with_data = sum(1 for m in monthly_data if m.has_data)
        annual_stats = AnnualStats(
            total_sessions=total_sessions,
            total_minutes=total_minutes,
            total_hours=round_half_up(total_minutes / 60),
            total_exercises=sum(m.total_exercises for m in monthly_data),
            average_sessions_per_month=round_half_up(total_sessions / months_with_data) if months_with_data else 0.0,
        )
        return AnnualSummaryData(year=year, monthly_data=monthly_data, annual_stats=annual_stats)

    @staticmethod
    async def get_shared_weekly_summary(db: AsyncSession, week_start: date) -> SharedSummaryData:
        week_start = week_start_for(week_start)
        week_end = week_start + timedelta(days=DAYS_PER_WEEK - 1)

        users = (await db.execute(select(User).order_by(User.created_at, User.name))).scalars().all()
        if len(users) < 2:
            raise InputValidationError("At least two users are required for the shared summary")

        rows: list[SharedUserSummary] = []
        training_days: list[set[date]] = []
        for user in users:
            stats = await SummaryService.calculate_week_stats(db, user.id, week_start)
            training_days.append(stats.training_days)
            rows.append(
                SharedUserSummary(
                    user_id=user.id,
                    name=user.name,
                    img=user.img or f"/images/avatars/{user.name.lower()}.png",
                    sessions=stats.sessions,
                    total_min=stats.total_min,
                    total_exercises=stats.total_exercises,
                )
            )

        same_days = len(training_days[0] & training_days[1])
        rows[0].same_days = same_days
        rows[1].same_days = same_days

        return SharedSummaryData(
            week_start=week_start,
            week_end=week_end,
            total_sessions=sum(r.sessions for r in rows),
            total_min=sum(r.total_min for r in rows),
            total_exercises=sum(r.total_exercises for r in rows),
            same_days=same_days,
            same_day_percentage=int(round_half_up(same_days / DAYS_PER_WEEK * 100, 0)),
            users=rows,
        )
