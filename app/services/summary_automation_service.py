from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.user import User
from app.services.calendar_service import previous_week_start, today_local, week_start_for
from app.services.summary_service import SummaryService

logger = logging.getLogger(__name__)


@dataclass
class RegenerationRunSummary:
    started_at: str
    finished_at: str
    duration_seconds: float
    week_start: str
    users_scanned: int
    created: int
    updated: int
    skipped_empty: int
    errors: list[str]
    reason: str


class SummaryAutomationService:
    _last_run: dict = {
        "last_run_at": None,
        "last_success_at": None,
        "last_error": None,
        "last_summary": None,
    }

    @staticmethod
    async def regenerate_user_week(db: AsyncSession, *, user_id: uuid.UUID, week_start: date) -> str:
        """Recompute one user's week from raw sessions and overwrite the stored row.

        Returns ``created``, ``updated`` or ``skipped_empty``.
        """
        stats = await SummaryService.calculate_week_stats(db, user_id, week_start)
        if stats.sessions == 0:
            return "skipped_empty"

        existing = await SummaryService.find_weekly_summary(db, user_id, week_start)
        await SummaryService.upsert_weekly_summary(db, user_id, week_start, stats)
        await db.commit()
        return "updated" if existing else "created"

    @staticmethod
    async def run(
        session_factory: async_sessionmaker[AsyncSession],
        *,
        week_start: date | None = None,
        today: date | None = None,
        reason: str = "manual",
    ) -> dict:
        started = datetime.now(timezone.utc)
        if week_start is not None:
            target_week = week_start_for(week_start)
        else:
            target_week = previous_week_start(today or today_local())

        async with session_factory() as db:
            user_ids = list((await db.execute(select(User.id).order_by(User.created_at))).scalars().all())

        created = 0
        updated = 0
        skipped_empty = 0
        errors: list[str] = []

        for uid in user_ids:
            # One session per user.
            async with session_factory() as db:
                try:
                    outcome = await SummaryAutomationService.regenerate_user_week(db, user_id=uid, week_start=target_week)
                except Exception as exc:
                    await db.rollback()
                    logger.exception("Weekly summary regeneration failed for user %s week %s", uid, target_week)
                    errors.append(f"{uid}:{target_week.isoformat()}: {exc}")
                    continue
            if outcome == "created":
                created += 1
            elif outcome == "updated":
                updated += 1
            else:
                skipped_empty += 1

        finished = datetime.now(timezone.utc)
        summary = RegenerationRunSummary(
            started_at=started.isoformat(),
            finished_at=finished.isoformat(),
            duration_seconds=round((finished - started).total_seconds(), 3),
            week_start=target_week.isoformat(),
            users_scanned=len(user_ids),
            created=created,
            updated=updated,
            skipped_empty=skipped_empty,
            errors=errors[:100],
            reason=reason,
        )

        SummaryAutomationService._last_run["last_run_at"] = finished.isoformat()
        SummaryAutomationService._last_run["last_summary"] = summary.__dict__
        if errors:
            SummaryAutomationService._last_run["last_error"] = errors[0]
        else:
            SummaryAutomationService._last_run["last_success_at"] = finished.isoformat()
            SummaryAutomationService._last_run["last_error"] = None

        return summary.__dict__

    @staticmethod
    def status() -> dict:
        return {
            "enabled": settings.SUMMARY_AUTO_ENABLED,
            "schedule": {
                "hour_local": settings.SUMMARY_AUTO_HOUR_LOCAL,
                "minute_local": settings.SUMMARY_AUTO_MINUTE_LOCAL,
                "timezone": settings.SUMMARY_AUTO_TZ or settings.TRACKER_TIMEZONE,
            },
            **SummaryAutomationService._last_run,
        }
