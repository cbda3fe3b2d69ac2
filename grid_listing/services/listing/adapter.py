from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Mapping, Protocol, Sequence

import sqlalchemy as sa
from fastapi import HTTPException
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import TableClause

from .predicates import EMPTY, Predicate

BLANK_VALUE = "<blank>"


class ListingConfigurationError(RuntimeError):
    pass


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == "" or str(value) == BLANK_VALUE


def same_filter_value(left: Any, right: Any) -> bool:
    if right is None:
        return False
    return str(left).strip().casefold() == str(right).strip().casefold()


def _unknown_column(column: str) -> HTTPException:
    return HTTPException(status_code=400, detail=f'Неизвестная колонка "{column}"')


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str
    selected: bool = False
    count: int = 0

    def sort_key(self) -> tuple:
        return (self.value != BLANK_VALUE, self.value.casefold(), self.value)

    def __lt__(self, other: "FilterOption") -> bool:
        if not isinstance(other, FilterOption):
            return NotImplemented
        return self.sort_key() < other.sort_key()


class RecordStore(Protocol):
    def fetch_rows(self, stmt: sa.Select) -> list[dict[str, Any]]:
        ...

    def fetch_count(self, stmt: sa.Select) -> int:
        ...

    def fetch_groups(self, stmt: sa.Select) -> list[tuple[Any, int]]:
        ...


class ListingAdapter(Protocol):
    def select_fields(self) -> Sequence[str]:
        ...

    def object_name(self) -> str:
        ...

    def selectable(self) -> TableClause:
        ...

    def field_column(self, field_name: str) -> ColumnElement[Any]:
        ...

    def default_order_by_clause(self) -> list[ColumnElement[Any]]:
        ...

    def build_filter_clause(self, column: str, value: Any) -> Predicate:
        ...

    def build_search_clause(self, column: str, term: str) -> Predicate:
        ...

    def static_filter_clause(self) -> Predicate:
        ...

    def column_name_to_field(self, column: str) -> str:
        ...

    def transform(self, row: dict[str, Any]) -> dict[str, Any]:
        ...

    def filterable_columns(self) -> Sequence[str]:
        ...

    def searchable_columns(self) -> Sequence[str]:
        ...

    def build_filter_option(self, column: str, value: str, current_selection: str | None, count: int) -> FilterOption:
        ...

    def get_filter_options(
        self,
        store: RecordStore,
        active_filters: Mapping[str, str],
        where: Predicate,
    ) -> dict[str, list[FilterOption]] | None:
        ...


FilterOptionsProvider = Callable[
    ["TableListingAdapter", RecordStore, Mapping[str, str], Predicate],
    "dict[str, list[FilterOption]] | None",
]


@dataclass(frozen=True)
class TableListingAdapter:
    """Listing configuration for one table.

    ``filter_fields`` lists store fields that may be filtered on without being
    selected (foreign keys used by hidden filters, for example).
    ``default_order_by`` holds ``(field, "asc" | "desc")`` pairs.
    """

    table: str
    fields: tuple[str, ...]
    default_order_by: tuple[tuple[str, str], ...] = ()
    static_filter: Predicate = EMPTY
    filterable: tuple[str, ...] = ()
    searchable: tuple[str, ...] = ()
    field_map: Mapping[str, str] = field(default_factory=dict)
    filter_fields: tuple[str, ...] = ()
    transformer: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    filter_options_provider: FilterOptionsProvider | None = None

    def validate(self) -> None:
        if not str(self.table or "").strip():
            raise ListingConfigurationError("Listing object name is missing")
        if not self.fields:
            raise ListingConfigurationError(f"Listing {self.table!r} selects no fields")
        for name, _ in self.default_order_by:
            if name not in self._known_fields:
                raise ListingConfigurationError(f"Listing {self.table!r} orders by unknown field {name!r}")

    @cached_property
    def _known_fields(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys((*self.fields, *self.field_map.values(), *self.filter_fields)))

    @cached_property
    def _table_clause(self) -> TableClause:
        return sa.table(self.table, *(sa.column(name) for name in self._known_fields))

    def select_fields(self) -> tuple[str, ...]:
        return self.fields

    def object_name(self) -> str:
        return self.table

    def selectable(self) -> TableClause:
        return self._table_clause

    def field_column(self, field_name: str) -> ColumnElement[Any]:
        return self._table_clause.c[field_name]

    def default_order_by_clause(self) -> list[ColumnElement[Any]]:
        clauses = []
        for name, direction in self.default_order_by:
            col = self.field_column(name)
            clauses.append(col.asc() if str(direction).lower() == "asc" else col.desc())
        return clauses

    def static_filter_clause(self) -> Predicate:
        return self.static_filter

    def filterable_columns(self) -> tuple[str, ...]:
        return self.filterable

    def searchable_columns(self) -> tuple[str, ...]:
        return self.searchable

    def column_name_to_field(self, column: str) -> str:
        return self.field_map.get(column, column)

    def known_field(self, column: str) -> str:
        field_name = self.column_name_to_field(str(column or "").strip())
        if field_name not in self._known_fields:
            raise _unknown_column(column)
        return field_name

    def build_filter_clause(self, column: str, value: Any) -> Predicate:
        col = self.field_column(self.known_field(column))
        if is_blank(value):
            # NULL and whitespace-only values count as empty, same as facets.
            return Predicate(sa.func.trim(sa.func.coalesce(col, "")) == "")
        return Predicate(col == value)

    def build_search_clause(self, column: str, term: str) -> Predicate:
        text = str(term or "").strip()
        if not text:
            return EMPTY
        col = self.field_column(self.known_field(column))
        return Predicate(col.icontains(text, autoescape=True))

    def transform(self, row: dict[str, Any]) -> dict[str, Any]:
        if self.transformer is None:
            return dict(row)
        return self.transformer(dict(row))

    def build_filter_option(self, column: str, value: str, current_selection: str | None, count: int) -> FilterOption:
        return FilterOption(
            value=value,
            label=f"{value} ({count})",
            selected=same_filter_value(value, current_selection),
            count=int(count),
        )

    def get_filter_options(
        self,
        store: RecordStore,
        active_filters: Mapping[str, str],
        where: Predicate,
    ) -> dict[str, list[FilterOption]] | None:
        if self.filter_options_provider is None:
            return None
        return self.filter_options_provider(self, store, active_filters, where)
