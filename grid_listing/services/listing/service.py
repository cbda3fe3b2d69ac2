from __future__ import annotations

from typing import Mapping

from sqlalchemy.orm import Session

from grid_listing.schemas.listing import ListingMeta, ListingQuery, ListingRequest, ListingResponse

from .engine import get_records
from .registry import get_listing_adapter, list_listing_keys
from .store import SqlRecordStore


def query_listing_service(
    listing_key: str,
    query: ListingQuery,
    db: Session,
    *,
    hidden_filters: Mapping[str, str] | None = None,
) -> ListingResponse:
    adapter = get_listing_adapter(listing_key)
    request = ListingRequest(**query.model_dump(), hidden_filters=dict(hidden_filters or {}))
    return get_records(request, adapter, SqlRecordStore(db))


def list_listings_meta_service() -> list[ListingMeta]:
    rows = []
    for key in list_listing_keys():
        adapter = get_listing_adapter(key)
        rows.append(
            ListingMeta(
                key=key,
                object_name=adapter.object_name(),
                filterable_columns=list(adapter.filterable_columns()),
                searchable_columns=list(adapter.searchable_columns()),
            )
        )
    return rows
