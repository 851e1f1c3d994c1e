from lendit.schemas.auth import Token, UserCreate, UserLogin, UserUpdate, UserResponse, SuspendRequest
from lendit.schemas.listing import ListingCreate, ListingUpdate, ListingStatusUpdate, ListingResponse
from lendit.schemas.booking import BookingCreate, BookingStatusUpdate, BookingResponse, BookingPolicyStatusResponse
from lendit.schemas.policy import PolicyPublish, PolicyVersionInfo, PolicyResponse
from lendit.schemas.audit import AuditLogResponse, AuditLogPage
from lendit.schemas.verification import VerificationSubmit, VerificationApprove, VerificationReject, VerificationResponse
from lendit.schemas.review import ReviewCreate, ReviewResponse
