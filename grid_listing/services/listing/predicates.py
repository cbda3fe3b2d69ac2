from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement


@dataclass(frozen=True, eq=False)
class Predicate:
    """Boolean SQL expression ready to be AND/OR-joined.

    The engine never looks inside: it only joins predicates and hands them to
    ``Select.where``. Values inside are bound parameters created by the adapter.
    """

    clause: ColumnElement[bool] | None = None

    def is_empty(self) -> bool:
        return self.clause is None

    def apply(self, stmt: sa.Select) -> sa.Select:
        if self.clause is None:
            return stmt
        return stmt.where(self.clause)

    def __bool__(self) -> bool:
        return self.clause is not None


EMPTY = Predicate()


def _present(parts: Iterable[Predicate | None]) -> list[ColumnElement[bool]]:
    return [part.clause for part in parts if part is not None and part.clause is not None]


def and_(parts: Iterable[Predicate | None]) -> Predicate:
    clauses = _present(parts)
    if not clauses:
        return EMPTY
    if len(clauses) == 1:
        return Predicate(clauses[0])
    return Predicate(sa.and_(*clauses))


def or_(parts: Iterable[Predicate | None]) -> Predicate:
    clauses = _present(parts)
    if not clauses:
        return EMPTY
    if len(clauses) == 1:
        return Predicate(clauses[0])
    return Predicate(sa.or_(*clauses).self_group())
