from __future__ import annotations

from app.models.listing import Listing
from app.schemas.listing import (
    CategorySnapshot,
    ImageRef,
    ImageUrls,
    ListingResource,
    SellerResource,
    SellerSnapshot,
)


def image_urls(file_name: str, *, base_url: str) -> ImageUrls:
    return ImageUrls(
        url=f"{base_url}{file_name}_full.jpg",
        thumbnail_url=f"{base_url}{file_name}_thumb.jpg",
    )


def map_seller(seller: SellerSnapshot, *, base_url: str) -> SellerResource:
    images = [image_urls(seller.profile_image, base_url=base_url)] if seller.profile_image else []
    return SellerResource(
        id=seller.id,
        name=seller.name,
        email=seller.email,
        images=images,
        listing_count=seller.listing_count,
    )


def map_listing(listing: Listing, *, base_url: str) -> ListingResource:
    images = [ImageRef.model_validate(i) for i in listing.images or []]
    return ListingResource(
        id=listing.id,
        title=listing.title,
        description=listing.description,
        price=listing.price,
        location=listing.location,
        images=[image_urls(i.file_name, base_url=base_url) for i in images],
        category=CategorySnapshot.model_validate(listing.category),
        added_by=map_seller(SellerSnapshot.model_validate(listing.added_by), base_url=base_url),
        created_at=listing.created_at,
        updated_at=listing.updated_at,
    )
