from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from .adapter import TableListingAdapter
from .adapters.accounts import ACCOUNTS_LISTING
from .adapters.contacts import CONTACTS_LISTING


@lru_cache(maxsize=1)
def _listing_adapter_map() -> dict[str, TableListingAdapter]:
    adapters = {
        "accounts": ACCOUNTS_LISTING,
        "contacts": CONTACTS_LISTING,
    }
    for adapter in adapters.values():
        adapter.validate()
    return adapters


def _normalize_listing_key(listing_key: str) -> str:
    return str(listing_key or "").strip().lower()


def get_listing_adapter(listing_key: str) -> TableListingAdapter:
    adapter = _listing_adapter_map().get(_normalize_listing_key(listing_key))
    if adapter is None:
        raise HTTPException(status_code=404, detail="Список не найден")
    return adapter


def list_listing_keys() -> list[str]:
    return sorted(_listing_adapter_map())
