"""
Request schemas for KrishiLink

Documents are stored as loose JSON in MongoDB. These Pydantic models only
validate the fields the service reads (ids, emails, quantities, status);
every other field is allowed through unchanged and stored as sent.

Collections:
- Crop -> "crops" (interests are embedded in the crop document)
- User -> "users"
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, Union


InterestStatus = Literal["pending", "accepted", "rejected"]


class Owner(BaseModel):
    model_config = ConfigDict(extra="allow")

    ownerEmail: Optional[str] = Field(None, description="Email of the listing owner")
    ownerName: Optional[str] = None


class CropIn(BaseModel):
    """Crop listing as posted by the owner. ``interests`` and ``createdAt`` are set by the server."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    type: Optional[str] = Field(None, description="e.g., grain, vegetable, fruit")
    location: Optional[str] = None
    quantity: Optional[Union[int, float]] = Field(None, description="Available amount, reduced as interests are accepted")
    owner: Optional[Owner] = None


class InterestIn(BaseModel):
    """A buyer's interest in a crop."""

    model_config = ConfigDict(extra="allow")

    cropId: str
    userEmail: str
    quantity: Union[int, float]


class InterestStatusUpdate(BaseModel):
    interestId: str
    cropId: str
    status: InterestStatus


class UserIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: str
