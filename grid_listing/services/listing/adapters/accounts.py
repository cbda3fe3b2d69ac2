from __future__ import annotations

from typing import Any, Mapping

import sqlalchemy as sa

from ..adapter import FilterOption, RecordStore, TableListingAdapter
from ..engine import default_filter_options
from ..predicates import Predicate
from .common import serialize_row

ACCOUNT_RATINGS = ("Hot", "Warm", "Cold")


def _account_record(row: dict[str, Any]) -> dict[str, Any]:
    record = serialize_row(row)
    record["revenue"] = record.pop("annual_revenue", None)
    return record


def _rating_picklist_options(
    adapter: TableListingAdapter,
    store: RecordStore,
    active_filters: Mapping[str, str],
    where: Predicate,
) -> dict[str, list[FilterOption]]:
    # Ratings come from a fixed picklist: values without rows are offered with a zero count.
    options = default_filter_options(adapter, store, active_filters, where)
    present = {option.value.casefold() for option in options.get("rating", [])}
    current = active_filters.get("rating")
    missing = [
        adapter.build_filter_option("rating", value, current, 0)
        for value in ACCOUNT_RATINGS
        if value.casefold() not in present
    ]
    options["rating"] = sorted([*options.get("rating", []), *missing])
    return options


ACCOUNTS_LISTING = TableListingAdapter(
    table="accounts",
    fields=("id", "name", "type", "industry", "rating", "city", "annual_revenue", "created_at"),
    default_order_by=(("name", "asc"), ("id", "asc")),
    static_filter=Predicate(sa.column("is_deleted", sa.Boolean) == sa.false()),
    filterable=("type", "industry", "rating"),
    searchable=("name", "city"),
    field_map={"revenue": "annual_revenue"},
    transformer=_account_record,
    filter_options_provider=_rating_picklist_options,
)
