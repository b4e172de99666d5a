from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any

from pydantic import ConfigDict, Field, field_validator

from app.schemas.common import CamelModel, EntityId


class Location(CamelModel):
    latitude: float
    longitude: float


class ImageRef(CamelModel):
    file_name: str


class CategorySnapshot(CamelModel):
    """
    Frozen copy of a category taken when the listing was written.
    Later edits to the category do not reach existing listings.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    icon: str | None = None
    background_color: str | None = None


class SellerSnapshot(CamelModel):
    """
    Frozen copy of the seller taken when the listing was written.
    `listing_count` is the seller's count as seen by that write.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    profile_image: str | None = Field(default=None, alias="images")
    listing_count: int


class ListingSubmission(CamelModel):
    """
    Text fields of a multipart create/update request.

    `location` and `oldImages` travel as JSON strings inside the form and are
    decoded before validation.
    """
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    price: float = Field(ge=1, allow_inf_nan=False)
    category_id: EntityId
    user_id: EntityId
    location: Location | None = None
    old_images: list[Annotated[str, Field(min_length=1)]] | None = None

    @field_validator("location", "old_images", mode="before")
    @classmethod
    def decode_json_field(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("must be a JSON-encoded value")
        return v


class ListingOut(CamelModel):
    """Stored record, as returned by create/update/delete."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None
    price: float
    location: Location | None
    images: list[ImageRef]
    category: CategorySnapshot
    added_by: SellerSnapshot
    created_at: datetime
    updated_at: datetime


class ImageUrls(CamelModel):
    url: str
    thumbnail_url: str


class SellerResource(CamelModel):
    id: str
    name: str
    email: str
    images: list[ImageUrls]
    listing_count: int


class ListingResource(CamelModel):
    """Read-side shape: image names resolved to asset URLs."""
    id: str
    title: str
    description: str | None
    price: float
    location: Location | None
    images: list[ImageUrls]
    category: CategorySnapshot
    added_by: SellerResource
    created_at: datetime
    updated_at: datetime
