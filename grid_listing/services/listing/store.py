from __future__ import annotations

from typing import Any

from sqlalchemy import Select
from sqlalchemy.orm import Session


class SqlRecordStore:
    """Runs listing statements through a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_rows(self, stmt: Select) -> list[dict[str, Any]]:
        return [dict(row) for row in self.db.execute(stmt).mappings().all()]

    def fetch_count(self, stmt: Select) -> int:
        return int(self.db.execute(stmt).scalar() or 0)

    def fetch_groups(self, stmt: Select) -> list[tuple[Any, int]]:
        return [(row[0], int(row[1] or 0)) for row in self.db.execute(stmt).all()]
