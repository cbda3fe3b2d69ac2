from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from grid_listing.core.config import settings


class ListingQuery(BaseModel):
    """Grid state posted by the UI. Hidden filters are never accepted here."""

    page_size: int = Field(default=settings.LISTING_DEFAULT_PAGE_SIZE, ge=1)
    current_page: int = Field(default=1, ge=1)
    sorted_by: Optional[str] = None
    sorted_direction: Optional[str] = None
    search_term: Optional[str] = None
    active_filters: Dict[str, str] = {}


class ListingRequest(ListingQuery):
    model_config = ConfigDict(frozen=True)

    hidden_filters: Dict[str, str] = {}


class FilterOptionOut(BaseModel):
    value: str
    label: str
    selected: bool
    count: int


class ListingResponse(BaseModel):
    records: List[Dict[str, Any]]
    page_size: int
    current_page: int
    sorted_by: Optional[str] = None
    sorted_direction: Optional[str] = None
    search_term: Optional[str] = None
    active_filters: Dict[str, str] = {}
    total_records: int
    total_filtered_records: int
    filter_options: Dict[str, List[FilterOptionOut]] = {}


class ListingMeta(BaseModel):
    key: str
    object_name: str
    filterable_columns: List[str]
    searchable_columns: List[str]
