import asyncio
import logging
from sqlalchemy import func, select
from app.database import AsyncSessionLocal
from app.models.user import User
from app.models.fitness import Exercise

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

USERS = [
    {"name": "Vanessa", "img": "/images/avatars/vanessa.png"},
    {"name": "Santiago", "img": "/images/avatars/santiago.png"},
]

EXERCISES = [
    # Chest
    {"name": "Bench Press", "category": "Chest"},
    {"name": "Incline Dumbbell Press", "category": "Chest"},
    {"name": "Push Up", "category": "Chest"},
    {"name": "Cable Fly", "category": "Chest"},
    # Back
    {"name": "Deadlift", "category": "Back"},
    {"name": "Pull Up", "category": "Back"},
    {"name": "Barbell Row", "category": "Back"},
    {"name": "Lat Pulldown", "category": "Back"},
    # Legs
    {"name": "Squat", "category": "Legs"},
    {"name": "Leg Press", "category": "Legs"},
    {"name": "Romanian Deadlift", "category": "Legs"},
    {"name": "Lunges", "category": "Legs"},
    {"name": "Hip Thrust", "category": "Legs"},
    {"name": "Calf Raise", "category": "Legs"},
    # Shoulders
    {"name": "Overhead Press", "category": "Shoulders"},
    {"name": "Lateral Raise", "category": "Shoulders"},
    # Arms
    {"name": "Biceps Curl", "category": "Arms"},
    {"name": "Triceps Pushdown", "category": "Arms"},
    # Core
    {"name": "Plank", "category": "Core"},
    {"name": "Crunches", "category": "Core"},
    # Cardio
    {"name": "Running", "category": "Cardio"},
    {"name": "Cycling", "category": "Cardio"},
    {"name": "Rowing Machine", "category": "Cardio"},
]


async def seed_data():
    async with AsyncSessionLocal() as session:
        for user_data in USERS:
            result = await session.execute(select(User).where(User.name == user_data["name"]))
            if result.scalar_one_or_none():
                logger.info("User already exists: %s", user_data["name"])
                continue
            session.add(User(name=user_data["name"], img=user_data["img"]))
            logger.info("Created user: %s", user_data["name"])

        created = 0
        for exercise_data in EXERCISES:
            stmt = select(Exercise.id).where(func.lower(Exercise.name) == exercise_data["name"].lower())
            if (await session.execute(stmt)).scalar_one_or_none():
                continue
            session.add(Exercise(name=exercise_data["name"], category=exercise_data["category"]))
            created += 1
        logger.info("Exercise catalog: %s created, %s already present", created, len(EXERCISES) - created)

        await session.commit()
    logger.info("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed_data())
