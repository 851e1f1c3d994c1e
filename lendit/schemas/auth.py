"""Auth and user schemas."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, model_validator
from lendit.models.user import UserRole, VerificationStatus


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    confirm_password: str = ""
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole = UserRole.RENTER
    terms_agreed: bool = False

    @model_validator(mode="after")
    def passwords_match_and_agreed(self):
        if self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        if not self.terms_agreed:
            raise ValueError("You must agree to the Terms of Use")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    region: str | None = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    email: str
    role: UserRole
    first_name: str | None
    last_name: str | None
    phone: str | None
    region: str | None
    verification_status: VerificationStatus
    is_suspended: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class SuspendRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
