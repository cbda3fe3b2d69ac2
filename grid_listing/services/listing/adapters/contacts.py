from __future__ import annotations

from typing import Any

from ..adapter import TableListingAdapter
from .common import serialize_row


def _contact_record(row: dict[str, Any]) -> dict[str, Any]:
    record = serialize_row(row)
    parts = [str(record.get("first_name") or "").strip(), str(record.get("last_name") or "").strip()]
    record["full_name"] = " ".join(part for part in parts if part)
    return record


CONTACTS_LISTING = TableListingAdapter(
    table="contacts",
    fields=("id", "account_id", "first_name", "last_name", "email", "title", "lead_source", "created_at"),
    default_order_by=(("last_name", "asc"), ("first_name", "asc"), ("id", "asc")),
    filterable=("title", "lead_source"),
    searchable=("first_name", "last_name", "email"),
    field_map={"name": "last_name"},
    transformer=_contact_record,
)
