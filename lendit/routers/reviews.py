"""Booking reviews."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import get_current_user
from lendit.models.user import User
from lendit.schemas.review import ReviewCreate, ReviewResponse
from lendit.services.reviews import create_review

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("/", response_model=ReviewResponse, status_code=201)
def add_review(
    request: Request,
    data: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = create_review(db, current_user, data.booking_id, data.rating, data.comment, request=request)
    return ReviewResponse.model_validate(review)
