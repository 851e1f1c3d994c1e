"""Equipment listings."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import get_current_user, require_owner
from lendit.models.user import User
from lendit.schemas.listing import ListingCreate, ListingResponse, ListingStatusUpdate, ListingUpdate
from lendit.services.listings import change_listing_status, create_listing, get_listing, update_listing

router = APIRouter(prefix="/listings", tags=["listings"])


@router.post("/", response_model=ListingResponse, status_code=201)
def add_listing(
    request: Request,
    data: ListingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
):
    listing = create_listing(db, current_user, data.model_dump(), request=request)
    return ListingResponse.model_validate(listing)


@router.get("/{listing_id}", response_model=ListingResponse)
def read_listing(listing_id: int, db: Session = Depends(get_db)):
    return ListingResponse.model_validate(get_listing(db, listing_id))


@router.patch("/{listing_id}", response_model=ListingResponse)
def edit_listing(
    request: Request,
    listing_id: int,
    data: ListingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = update_listing(db, current_user, listing_id, data.model_dump(exclude_unset=True), request=request)
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}/status", response_model=ListingResponse)
def set_listing_status(
    request: Request,
    listing_id: int,
    data: ListingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = change_listing_status(db, current_user, listing_id, data.status, reason=data.reason, request=request)
    return ListingResponse.model_validate(listing)
