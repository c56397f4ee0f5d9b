"""Weight tracking, one-week weight projection and goal progress."""
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.models.enums import GoalType
from app.models.fitness import Session, SessionExercise
from app.models.progress import Goal, WeightEntry
from app.services.calendar_service import today_local, week_end_for, week_start_for

logger = logging.getLogger(__name__)

PROJECTION_WINDOW = 4


@dataclass
class GoalProgress:
    goal_id: uuid.UUID
    type: GoalType
    target_value: float
    current: float | None
    percentage: float
    is_gain: bool | None = None


def _clamp_percentage(value: float) -> float:
    return min(100.0, max(0.0, value))


def project_from_weights(weights: Sequence[float]) -> float | None:
    """Last weight plus the mean change between consecutive weigh-ins.

    ``weights`` must be in chronological order. Needs at least two values.
    """
    if len(weights) < 2:
        return None
    deltas = [current - previous for previous, current in zip(weights, weights[1:])]
    return weights[-1] + sum(deltas) / len(deltas)


async def list_weight_entries(
    user_id: uuid.UUID,
    db: AsyncSession,
    *,
    before: date | None = None,
    until: date | None = None,
    limit: int | None = None,
) -> list[WeightEntry]:
    """Weight entries newest first, optionally bounded by week start."""
    stmt = select(WeightEntry).where(WeightEntry.user_id == user_id)
    if before is not None:
        stmt = stmt.where(WeightEntry.week_start < week_start_for(before))
    if until is not None:
        stmt = stmt.where(WeightEntry.week_start <= week_start_for(until))
    stmt = stmt.order_by(WeightEntry.week_start.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def register_weight_entry(
    user_id: uuid.UUID,
    weight_kg: float,
    db: AsyncSession,
    *,
    week_start: date | None = None,
) -> WeightEntry:
    """One weigh-in per week: a second entry for the same week overwrites the first."""
    normalized = week_start_for(week_start or today_local())
    insert = dialect_insert(db)
    stmt = insert(WeightEntry).values(
        id=uuid.uuid4(),
        user_id=user_id,
        week_start=normalized,
        weight_kg=weight_kg,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "week_start"],
        set_={"weight_kg": stmt.excluded.weight_kg},
    )
    await db.execute(stmt)
    await db.commit()
    logger.info("Registered weight %.1f kg for user %s week %s", weight_kg, user_id, normalized)

    result = await db.execute(
        select(WeightEntry)
        .where(WeightEntry.user_id == user_id, WeightEntry.week_start == normalized)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def project_next_weight_kg(user_id: uuid.UUID, as_of_week_start: date, db: AsyncSession) -> float | None:
    entries = await list_weight_entries(user_id, db, before=as_of_week_start, limit=PROJECTION_WINDOW)
    chronological = sorted(entries, key=lambda entry: entry.week_start)
    return project_from_weights([entry.weight_kg for entry in chronological])


def calculate_goal_progress(goal: Goal, weight_entries: Sequence[WeightEntry]) -> GoalProgress:
    """Progress of a weight goal from the oldest to the newest provided entry."""
    if not weight_entries:
        return GoalProgress(goal_id=goal.id, type=goal.type, target_value=goal.target_value, current=None, percentage=0.0)

    ordered = sorted(weight_entries, key=lambda entry: entry.week_start)
    initial = ordered[0].weight_kg
    latest = ordered[-1].weight_kg
    target = goal.target_value
    is_gain = target > initial

    if target == initial:
        percentage = 100.0 if latest == target else 0.0
    elif is_gain:
        percentage = _clamp_percentage((latest - initial) / (target - initial) * 100)
    else:
        percentage = _clamp_percentage((initial - latest) / (initial - target) * 100)

    return GoalProgress(
        goal_id=goal.id,
        type=goal.type,
        target_value=target,
        current=latest,
        percentage=percentage,
        is_gain=is_gain,
    )


async def get_goal_progress(goal: Goal, db: AsyncSession, *, today: date | None = None) -> GoalProgress:
    today = today or today_local()

    if goal.type == GoalType.WEIGHT:
        entries = await list_weight_entries(goal.user_id, db)
        return calculate_goal_progress(goal, entries)

    if goal.type == GoalType.FREQUENCY:
        stmt = select(func.count(Session.id)).where(
            Session.user_id == goal.user_id,
            Session.date >= week_start_for(today),
            Session.date <= week_end_for(today),
        )
        current = float((await db.execute(stmt)).scalar_one() or 0)
    else:
        stmt = (
            select(func.max(SessionExercise.weight_kg))
            .join(Session, SessionExercise.session_id == Session.id)
            .where(Session.user_id == goal.user_id)
        )
        current = float((await db.execute(stmt)).scalar_one() or 0.0)

    return GoalProgress(
        goal_id=goal.id,
        type=goal.type,
        target_value=goal.target_value,
        current=current,
        percentage=_clamp_percentage(current / goal.target_value * 100),
    )
