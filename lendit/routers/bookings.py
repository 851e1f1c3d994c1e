"""Bookings: creation with policy binding, lifecycle, policy status."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import get_current_user
from lendit.errors import PolicyNotFound
from lendit.models.user import User
from lendit.schemas.booking import BookingCreate, BookingPolicyStatusResponse, BookingResponse, BookingStatusUpdate
from lendit.services.bookings import (
    BookingDraft,
    create_booking,
    get_booking_for,
    list_bookings_for,
    transition_booking_status,
)
from lendit.services.policy import check_booking_policy

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/", response_model=BookingResponse, status_code=201)
def add_booking(
    request: Request,
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        booking = create_booking(
            db,
            current_user,
            BookingDraft(listing_id=data.listing_id, start_date=data.start_date, end_date=data.end_date),
            accepted_policy_version=data.accepted_policy_version,
            request=request,
        )
    except PolicyNotFound as e:
        raise HTTPException(status_code=422, detail=e.message)
    return BookingResponse.model_validate(booking)


@router.get("/", response_model=list[BookingResponse])
def list_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    as_renter: bool = Query(True, description="True=bookings where I am renter, False=bookings where I am owner"),
):
    return [BookingResponse.model_validate(b) for b in list_bookings_for(db, current_user, as_renter=as_renter)]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return BookingResponse.model_validate(get_booking_for(db, booking_id, current_user))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def set_booking_status(
    request: Request,
    booking_id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = transition_booking_status(
        db, booking_id, data.status, current_user, reason=data.reason, request=request
    )
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/policy-status", response_model=BookingPolicyStatusResponse)
def booking_policy_status(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking = get_booking_for(db, booking_id, current_user)
    return BookingPolicyStatusResponse.model_validate(check_booking_policy(db, booking.id))
