"""Registration, login and profile."""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import get_current_user
from lendit.models.user import User
from lendit.schemas.auth import Token, UserCreate, UserLogin, UserResponse, UserUpdate
from lendit.services.auth import create_access_token
from lendit.services.users import authenticate, register_user, update_profile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(request: Request, data: UserCreate, db: Session = Depends(get_db)):
    user = register_user(
        db,
        data.email,
        data.password,
        role=data.role,
        first_name=data.first_name,
        last_name=data.last_name,
        request=request,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=Token)
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = authenticate(db, data.email, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user.is_suspended:
        raise HTTPException(status_code=403, detail="Account suspended")
    return Token(access_token=create_access_token(user.id, user.email, user.role))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
def update_me(
    request: Request,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = update_profile(db, current_user, current_user, data.model_dump(exclude_unset=True), request=request)
    return UserResponse.model_validate(user)
