from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from fastapi import HTTPException
from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement

from grid_listing.core.config import settings
from grid_listing.schemas.listing import FilterOptionOut, ListingRequest, ListingResponse

from .adapter import BLANK_VALUE, FilterOption, ListingAdapter, ListingConfigurationError, RecordStore
from .predicates import Predicate, and_, or_

_LOG = logging.getLogger("app.listing")

# Largest OFFSET a 64-bit SQL integer parameter can carry.
MAX_ROW_OFFSET = 2**63 - 1


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


@dataclass(frozen=True)
class ListingPredicates:
    active: Predicate
    baseline: Predicate
    has_user_filter: bool


def _validate_request(request: ListingRequest) -> None:
    if request.page_size < 1:
        raise _bad_request("Размер страницы должен быть не меньше 1")
    if request.page_size > settings.LISTING_MAX_PAGE_SIZE:
        raise _bad_request(f"Размер страницы не может превышать {settings.LISTING_MAX_PAGE_SIZE}")
    if request.current_page < 1:
        raise _bad_request("Номер страницы должен быть не меньше 1")
    if page_offset(request.page_size, request.current_page) > MAX_ROW_OFFSET:
        raise _bad_request("Номер страницы слишком большой")


def _object_name_or_error(adapter: ListingAdapter) -> str:
    validate = getattr(adapter, "validate", None)
    if callable(validate):
        validate()
    name = str(adapter.object_name() or "").strip()
    if not name:
        raise ListingConfigurationError("Listing object name is missing")
    if not list(adapter.select_fields()):
        raise ListingConfigurationError(f"Listing {name!r} selects no fields")
    return name


def _set_filters(filters: Mapping[str, Any]) -> dict[str, Any]:
    # Empty values mean "not filtered"; blank rows are requested with BLANK_VALUE.
    return {column: value for column, value in filters.items() if value is not None and str(value).strip() != ""}


def _sorted_by(request: ListingRequest) -> str | None:
    return str(request.sorted_by or "").strip() or None


def is_ascending(direction: str | None) -> bool:
    return str(direction or "").strip().lower() == "asc"


def page_offset(page_size: int, current_page: int) -> int:
    return page_size * (current_page - 1)


def facet_value(raw: Any) -> str:
    if raw is None or str(raw).strip() == "":
        return BLANK_VALUE
    return str(raw)


def compose_predicates(request: ListingRequest, adapter: ListingAdapter) -> ListingPredicates:
    user_clauses = [
        adapter.build_filter_clause(column, value) for column, value in _set_filters(request.active_filters).items()
    ]
    hidden_clauses = [
        adapter.build_filter_clause(column, value) for column, value in _set_filters(request.hidden_filters).items()
    ]
    hidden_clauses.append(adapter.static_filter_clause())

    term = str(request.search_term or "").strip()
    if term:
        user_clauses.append(or_(adapter.build_search_clause(column, term) for column in adapter.searchable_columns()))

    has_user_filter = any(clause is not None and not clause.is_empty() for clause in user_clauses)
    return ListingPredicates(
        active=and_([*user_clauses, *hidden_clauses]),
        baseline=and_(hidden_clauses),
        has_user_filter=has_user_filter,
    )


def build_order_by(request: ListingRequest, adapter: ListingAdapter) -> list[ColumnElement[Any]]:
    clauses: list[ColumnElement[Any]] = []
    sorted_by = _sorted_by(request)
    if sorted_by:
        field_name = adapter.column_name_to_field(sorted_by)
        if field_name not in set(adapter.select_fields()):
            raise _bad_request(f'Сортировка по колонке "{sorted_by}" недоступна')
        col = adapter.field_column(field_name)
        if is_ascending(request.sorted_direction):
            clauses.append(col.asc().nulls_first())
        else:
            clauses.append(col.desc().nulls_last())
    clauses.extend(adapter.default_order_by_clause() or [])
    return clauses


def count_statement(adapter: ListingAdapter, predicate: Predicate) -> Select:
    return predicate.apply(select(func.count()).select_from(adapter.selectable()))


def rows_statement(adapter: ListingAdapter, request: ListingRequest, predicates: ListingPredicates) -> Select:
    columns = [adapter.field_column(name) for name in adapter.select_fields()]
    stmt = predicates.active.apply(select(*columns).select_from(adapter.selectable()))
    order_by = build_order_by(request, adapter)
    if order_by:
        stmt = stmt.order_by(*order_by)
    return stmt.limit(request.page_size).offset(page_offset(request.page_size, request.current_page))


def default_filter_options(
    adapter: ListingAdapter,
    store: RecordStore,
    active_filters: Mapping[str, str],
    where: Predicate,
) -> dict[str, list[FilterOption]]:
    """Facet values for every filterable column, counted under ``where``.

    ``where`` is the full active predicate, so a column that is itself
    filtered only reports the selected value in its own facet.
    """
    object_name = adapter.object_name()
    options: dict[str, list[FilterOption]] = {}
    for column in adapter.filterable_columns():
        field_name = adapter.column_name_to_field(column)
        try:
            col = adapter.field_column(field_name)
        except KeyError as exc:
            raise ListingConfigurationError(
                f"Listing {object_name!r} has an unknown filter field: {field_name!r}"
            ) from exc
        stmt = where.apply(
            select(col.label("value"), func.count().label("total")).select_from(adapter.selectable())
        ).group_by(col)
        counts: dict[str, int] = {}
        for raw, count in store.fetch_groups(stmt):
            value = facet_value(raw)
            counts[value] = counts.get(value, 0) + count
        current = active_filters.get(column)
        options[column] = sorted(
            adapter.build_filter_option(column, value, current, count) for value, count in counts.items()
        )
    return options


def _option_out(option: FilterOption) -> FilterOptionOut:
    return FilterOptionOut(value=option.value, label=option.label, selected=option.selected, count=option.count)


def get_records(request: ListingRequest, adapter: ListingAdapter, store: RecordStore) -> ListingResponse:
    _validate_request(request)
    object_name = _object_name_or_error(adapter)
    predicates = compose_predicates(request, adapter)
    rows_stmt = rows_statement(adapter, request, predicates)
    active_filters = _set_filters(request.active_filters)

    try:
        rows = store.fetch_rows(rows_stmt)
        total_records = store.fetch_count(count_statement(adapter, predicates.baseline))
        if predicates.has_user_filter:
            total_filtered = store.fetch_count(count_statement(adapter, predicates.active))
        else:
            total_filtered = total_records
        filter_options = adapter.get_filter_options(store, active_filters, predicates.active)
        if filter_options is None:
            filter_options = default_filter_options(adapter, store, active_filters, predicates.active)
    except SQLAlchemyError:
        _LOG.exception("Listing query failed for %s", object_name)
        raise

    records = [adapter.transform(row) for row in rows]
    _LOG.debug(
        "listing=%s page=%s size=%s rows=%s total=%s filtered=%s",
        object_name,
        request.current_page,
        request.page_size,
        len(records),
        total_records,
        total_filtered,
    )
    sorted_by = _sorted_by(request)
    sorted_direction = None
    if sorted_by:
        sorted_direction = "asc" if is_ascending(request.sorted_direction) else "desc"
    return ListingResponse(
        records=records,
        page_size=request.page_size,
        current_page=request.current_page,
        sorted_by=sorted_by,
        sorted_direction=sorted_direction,
        search_term=request.search_term,
        active_filters=active_filters,
        total_records=total_records,
        total_filtered_records=total_filtered,
        filter_options={column: [_option_out(option) for option in items] for column, items in filter_options.items()},
    )
