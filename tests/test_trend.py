import pytest
import uuid
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.enums import GoalType
from app.models.progress import Goal, WeightEntry
from app.services.trend_service import calculate_goal_progress, get_goal_progress, project_from_weights


def _goal(goal_type: GoalType, target: float) -> Goal:
    return Goal(id=uuid.uuid4(), user_id=uuid.uuid4(), type=goal_type, target_value=target)


def _entries(*weights: float) -> list[WeightEntry]:
    return [
        WeightEntry(week_start=date(2024, 1, 1 + 7 * idx), weight_kg=weight)
        for idx, weight in enumerate(weights)
    ]


def test_projection_needs_two_weights():
    assert project_from_weights([]) is None
    assert project_from_weights([70.0]) is None


def test_projection_adds_mean_delta():
    assert project_from_weights([70.0, 71.0, 72.0]) == pytest.approx(73.0)
    assert project_from_weights([80.0, 79.0, 79.5, 78.5]) == pytest.approx(78.0)


def test_weight_loss_progress():
    progress = calculate_goal_progress(_goal(GoalType.WEIGHT, 65.0), _entries(70.0, 68.0, 67.5))
    assert progress.current == 67.5
    assert progress.is_gain is False
    assert progress.percentage == pytest.approx(50.0)


def test_weight_gain_progress_is_clamped():
    overshoot = calculate_goal_progress(_goal(GoalType.WEIGHT, 75.0), _entries(70.0, 77.0))
    assert overshoot.is_gain is True
    assert overshoot.percentage == 100.0

    backwards = calculate_goal_progress(_goal(GoalType.WEIGHT, 75.0), _entries(70.0, 68.0))
    assert backwards.percentage == 0.0


def test_weight_progress_edge_cases():
    empty = calculate_goal_progress(_goal(GoalType.WEIGHT, 70.0), [])
    assert empty.current is None
    assert empty.percentage == 0.0

    at_target = calculate_goal_progress(_goal(GoalType.WEIGHT, 70.0), _entries(70.0))
    assert at_target.percentage == 100.0

    drifted = calculate_goal_progress(_goal(GoalType.WEIGHT, 70.0), _entries(70.0, 71.0))
    assert drifted.percentage == 0.0


@pytest.mark.asyncio
async def test_frequency_and_exercise_goal_progress(db_session: AsyncSession, users, catalog, log_session):
    vanessa, santiago = users
    squat = catalog["squat"]
    # Week of 2024-03-04
    await log_session(vanessa, date(2024, 3, 4), 60, [(squat, 80.0)])
    await log_session(vanessa, date(2024, 3, 6), 45, [(squat, 90.0)])
    await log_session(vanessa, date(2024, 2, 26), 45, [(squat, 60.0)])
    await log_session(santiago, date(2024, 3, 5), 50, [(squat, 140.0)])

    frequency = Goal(user_id=vanessa.id, type=GoalType.FREQUENCY, target_value=4)
    exercise = Goal(user_id=vanessa.id, type=GoalType.EXERCISE, target_value=100)
    db_session.add_all([frequency, exercise])
    await db_session.commit()

    progress = await get_goal_progress(frequency, db_session, today=date(2024, 3, 7))
    assert progress.current == 2
    assert progress.percentage == pytest.approx(50.0)

    progress = await get_goal_progress(exercise, db_session, today=date(2024, 3, 7))
    assert progress.current == 90.0
    assert progress.percentage == pytest.approx(90.0)
