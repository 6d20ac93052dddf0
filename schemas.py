"""
Database Schemas for the Product Hunt API

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (User -> "user").

We will use these collections:
- user: everyone who signed in (plain users, moderators, admins)
- product: submitted products with their vote/report/moderation state
- review: user reviews of a product
- coupon: promotional coupons managed by admins
- payment: completed subscription payments (append-only)
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["moderator", "admin"]
ProductStatus = Literal["pending", "Accepted", "Rejected"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    image: Optional[str] = None
    role: Optional[Role] = None
    isSubscribed: bool = False
    subscriptionDate: Optional[datetime] = None
    paymentVerified: bool = False
    status: Optional[str] = None

class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    image: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    externalLink: Optional[str] = None
    ownerName: Optional[str] = None
    ownerEmail: EmailStr
    ownerImage: Optional[str] = None
    votes: int = Field(0, ge=0)
    votedUser: Optional[str] = Field(None, description="Email of the most recent voter only")
    report: int = Field(0, ge=0)
    reportedUser: Optional[str] = Field(None, description="Email of the most recent reporter only")
    reportedStatus: Optional[Literal["reported"]] = None
    status: ProductStatus = "pending"
    isFeatured: bool = False
    timestamp: datetime = Field(default_factory=utcnow)

class Review(BaseModel):
    productId: str = Field(..., description="Reference to product _id")
    reviewerName: Optional[str] = None
    reviewerImage: Optional[str] = None
    reviewerEmail: Optional[EmailStr] = None
    description: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    timestamp: datetime = Field(default_factory=utcnow)

class Coupon(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount: float = Field(..., ge=0)
    expiryDate: Optional[str] = None
    description: Optional[str] = None

class Payment(BaseModel):
    # Stored as sent by the client after Stripe confirmed the charge.
    model_config = ConfigDict(extra="allow")

    email: EmailStr
    price: float = Field(..., ge=0)
    transactionId: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[str] = None
