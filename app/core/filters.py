"""Typed optional filters for list queries."""
from dataclasses import dataclass
from datetime import date
import uuid

from sqlalchemy import Select

from app.models.fitness import Exercise, Session


@dataclass(frozen=True)
class SessionFilter:
    user_id: uuid.UUID
    start_date: date | None = None
    end_date: date | None = None

    def apply(self, stmt: Select) -> Select:
        stmt = stmt.where(Session.user_id == self.user_id)
        if self.start_date:
            stmt = stmt.where(Session.date >= self.start_date)
        if self.end_date:
            stmt = stmt.where(Session.date <= self.end_date)
        return stmt


@dataclass(frozen=True)
class ExerciseFilter:
    category: str | None = None
    creator_id: uuid.UUID | None = None
    search: str | None = None

    def apply(self, stmt: Select) -> Select:
        if self.category:
            stmt = stmt.where(Exercise.category == self.category)
        if self.creator_id:
            stmt = stmt.where(Exercise.creator_id == self.creator_id)
        if self.search:
            stmt = stmt.where(Exercise.name.icontains(self.search.strip(), autoescape=True))
        return stmt
