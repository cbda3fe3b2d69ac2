from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from grid_listing.db.session import get_db
from grid_listing.schemas.listing import ListingMeta, ListingQuery, ListingResponse
from grid_listing.services.listing.service import list_listings_meta_service, query_listing_service

router = APIRouter()


@router.get("/meta", response_model=list[ListingMeta])
def list_listings_meta():
    return list_listings_meta_service()


@router.post("/accounts/{account_id}/contacts/query", response_model=ListingResponse)
def query_account_contacts(account_id: str, query: ListingQuery, db: Session = Depends(get_db)):
    return query_listing_service("contacts", query, db, hidden_filters={"account_id": account_id})


@router.post("/{listing_key}/query", response_model=ListingResponse)
def query_listing(listing_key: str, query: ListingQuery, db: Session = Depends(get_db)):
    return query_listing_service(listing_key, query, db)
