from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["tourist", "guide", "vehicle-owner", "admin"]
TargetType = Literal["guide", "vehicle"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]
VehicleType = Literal["car", "van", "tuktuk", "bus", "suv"]


class User(BaseModel):
    id: str
    name: str
    email: str
    role: Role = "tourist"
    password_hash: str
    created_at: datetime


class UserView(BaseModel):
    id: str
    name: str
    email: str
    role: Role


class Identity(BaseModel):
    """The authenticated caller of a core operation."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class AuthLoginRequest(BaseModel):
    email: str
    password: str


class AuthLoginResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    user: UserView
    expires_at: str


class Guide(BaseModel):
    id: str
    owner_user_id: str
    guide_id: str
    experience: int
    languages: list[str]
    specialties: list[str] = Field(default_factory=list)
    bio: str = ""
    hourly_rate: float
    daily_rate: float
    locations: list[str] = Field(default_factory=list)
    photo: str = ""
    is_verified: bool = False
    is_available: bool = True
    rating: float = 0.0
    total_reviews: int = 0
    created_at: datetime


class GuideRegisterRequest(BaseModel):
    guide_id: str
    experience: int
    languages: list[str]
    specialties: list[str] = Field(default_factory=list)
    bio: str = ""
    hourly_rate: float
    daily_rate: float
    locations: list[str] = Field(default_factory=list)
    photo: str = ""


class Vehicle(BaseModel):
    id: str
    owner_user_id: str
    vehicle_type: VehicleType
    vehicle_model: str
    vehicle_year: int
    license_plate: str
    capacity: int
    amenities: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    hourly_rate: float
    daily_rate: float
    driver_name: str
    driver_phone: str
    locations: list[str] = Field(default_factory=list)
    is_verified: bool = False
    is_available: bool = True
    rating: float = 0.0
    total_reviews: int = 0
    created_at: datetime


class VehicleRegisterRequest(BaseModel):
    vehicle_type: str
    vehicle_model: str
    vehicle_year: int
    license_plate: str
    capacity: int
    amenities: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    hourly_rate: float
    daily_rate: float
    driver_name: str
    driver_phone: str
    locations: list[str] = Field(default_factory=list)


class AvailabilityUpdateRequest(BaseModel):
    is_available: bool


class GuideFilters(BaseModel):
    location: Optional[str] = None
    min_experience: Optional[int] = None
    max_rate: Optional[float] = None
    language: Optional[str] = None
    specialty: Optional[str] = None


class VehicleFilters(BaseModel):
    vehicle_type: Optional[str] = None
    location: Optional[str] = None
    min_capacity: Optional[int] = None
    max_rate: Optional[float] = None
    amenity: Optional[str] = None


class GuideListing(BaseModel):
    items: list[Guide]
    count: int
    facets: Dict[str, list[str]]


class VehicleListing(BaseModel):
    items: list[Vehicle]
    count: int
    facets: Dict[str, list[str]]


class Booking(BaseModel):
    id: str
    tourist_id: str
    service_type: TargetType
    service_id: str
    provider_user_id: str
    start_at: datetime
    end_at: datetime
    party_size: int
    contact_name: str
    contact_email: str
    contact_phone: str
    pickup_location: str = ""
    notes: str = ""
    total_price: float
    status: BookingStatus = "pending"
    reviewed: bool = False
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class BookingCreateRequest(BaseModel):
    service_type: str
    service_id: str
    start_at: datetime
    end_at: datetime
    party_size: int = 1
    contact_name: str
    contact_email: str
    contact_phone: str
    pickup_location: str = ""
    notes: str = ""
    total_price: float


class BookingStatusUpdateRequest(BaseModel):
    status: str
    note: str = ""


class BookingActionRequest(BaseModel):
    note: str = ""


class BookingStatusChange(BaseModel):
    id: str
    booking_id: str
    actor_user_id: str
    from_status: str
    to_status: str
    note: str = ""
    created_at: datetime


class ReviewEligibility(BaseModel):
    id: str
    booking_id: str
    tourist_id: str
    target_type: TargetType
    target_id: str
    eligible: bool = True
    review_submitted: bool = False
    expires_at: datetime
    created_at: datetime


class BookingCompletion(BaseModel):
    booking: Booking
    review_eligibility: ReviewEligibility


class EligibilityCheck(BaseModel):
    eligible: bool
    reason: str
    booking_id: str
    target_type: TargetType
    target_id: str
    expires_at: Optional[datetime] = None


class Review(BaseModel):
    id: str
    booking_id: str
    author_id: str
    target_type: TargetType
    target_id: str
    target_owner_id: str
    rating: int = Field(ge=1, le=5)
    title: str
    comment: str = ""
    would_recommend: bool = True
    strengths: list[str] = Field(default_factory=list)
    is_public: bool = True
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None
    service_date: datetime
    created_at: datetime
    updated_at: datetime


class ReviewCreateRequest(BaseModel):
    booking_id: str
    target_type: str
    target_id: str
    rating: int
    title: Optional[str] = None
    comment: str = ""
    would_recommend: bool = True
    strengths: list[str] = Field(default_factory=list)


class ReviewUpdateRequest(BaseModel):
    rating: Optional[int] = None
    title: Optional[str] = None
    comment: Optional[str] = None
    would_recommend: Optional[bool] = None
    strengths: Optional[list[str]] = None
    is_public: Optional[bool] = None
    reply: Optional[str] = None


class RatingSummary(BaseModel):
    average: float
    count: int


class ReviewStatistics(BaseModel):
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[str, int] = Field(
        default_factory=lambda: {"5": 0, "4": 0, "3": 0, "2": 0, "1": 0}
    )
    recommendation_rate: int = 0


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ReviewPage(BaseModel):
    reviews: list[Review]
    pagination: Pagination
    statistics: ReviewStatistics
