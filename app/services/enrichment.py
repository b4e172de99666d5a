from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.category import Category
from app.models.user import User
from app.schemas.listing import CategorySnapshot, ListingSubmission, SellerSnapshot
from app.services.errors import InvalidCategory, InvalidUser
from app.services.images import TransformedSubmission
from app.services.listings import ListingRepository

log = logging.getLogger(__name__)

SubmissionMode = Literal["create", "update"]


@dataclass(frozen=True)
class EnrichedSubmission:
    submission: ListingSubmission
    images: tuple[str, ...]
    category: CategorySnapshot
    seller: SellerSnapshot


def category_snapshot(category: Category) -> CategorySnapshot:
    return CategorySnapshot(
        id=category.id,
        label=category.label,
        icon=category.icon,
        background_color=category.background_color,
    )


def seller_snapshot(user: User, *, listing_count: int) -> SellerSnapshot:
    return SellerSnapshot(
        id=user.id,
        name=user.name,
        email=user.email,
        profile_image=user.profile_image,
        listing_count=listing_count,
    )


async def enrich_submission(
    db: AsyncSession,
    transformed: TransformedSubmission,
    *,
    mode: SubmissionMode,
) -> EnrichedSubmission:
    """
    Resolve category and seller, and freeze snapshots of both.

    listing_count is the seller's current count, +1 on create to account for
    the row about to be inserted. On update the row is already counted. The
    count read and the later write are not atomic: two concurrent creates by
    one seller can store the same count.
    """
    sub = transformed.submission

    category = await db.get(Category, sub.category_id)
    if category is None:
        log.warning("enrichment: unknown category %s", sub.category_id)
        raise InvalidCategory()

    user = await db.get(User, sub.user_id)
    if user is None:
        log.warning("enrichment: unknown user %s", sub.user_id)
        raise InvalidUser()

    existing = await ListingRepository(db).count_by_seller(user.id)
    listing_count = existing + 1 if mode == "create" else existing

    return EnrichedSubmission(
        submission=sub,
        images=transformed.images,
        category=category_snapshot(category),
        seller=seller_snapshot(user, listing_count=listing_count),
    )
