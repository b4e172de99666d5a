from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.listing import Listing
from app.services.errors import ListingNotFound

log = logging.getLogger(__name__)

# Fields replaced wholesale on update; id and created_at are never touched.
MUTABLE_FIELDS = (
    "title",
    "description",
    "price",
    "location",
    "images",
    "category",
    "added_by",
    "added_by_id",
)


class ListingRepository:
    """
    Single-row operations over the listings table.

    Callers own the transaction: methods flush, the API layer commits.
    A missing row is reported as ListingNotFound, never as a store error.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, values: dict[str, Any]) -> Listing:
        listing = Listing(**{k: values.get(k) for k in MUTABLE_FIELDS})
        self.db.add(listing)
        await self.db.flush()
        log.info("listing created: id=%s seller=%s", listing.id, listing.added_by_id)
        return listing

    async def update(self, listing_id: str, values: dict[str, Any]) -> Listing:
        listing = await self._get_or_raise(listing_id)
        # full replace: anything absent from `values` is cleared
        for field in MUTABLE_FIELDS:
            setattr(listing, field, values.get(field))
        # bumped even when no column changed (no UPDATE would fire onupdate)
        listing.updated_at = utcnow()
        await self.db.flush()
        log.info("listing updated: id=%s seller=%s", listing.id, listing.added_by_id)
        return listing

    async def get(self, listing_id: str) -> Listing:
        return await self._get_or_raise(listing_id)

    async def list_all(self) -> list[Listing]:
        stmt = select(Listing).order_by(Listing.created_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def delete(self, listing_id: str) -> Listing:
        listing = await self._get_or_raise(listing_id)
        await self.db.delete(listing)
        await self.db.flush()
        log.info("listing deleted: id=%s", listing_id)
        # attributes stay loaded on the now-deleted instance
        return listing

    async def count_by_seller(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(Listing).where(Listing.added_by_id == user_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def _get_or_raise(self, listing_id: str) -> Listing:
        stmt = select(Listing).where(Listing.id == listing_id)
        listing = (await self.db.execute(stmt)).scalar_one_or_none()
        if listing is None:
            raise ListingNotFound()
        return listing
