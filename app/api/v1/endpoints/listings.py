import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.db import get_db
from app.core.ids import is_valid_id
from app.schemas.listing import ListingOut, ListingResource
from app.services.errors import InvalidListingId, TooManyImages
from app.services.listing_mapper import map_listing
from app.services.listings import ListingRepository
from app.services.pipeline import ListingIngestion
from app.services.storage import LocalObjectStore, get_asset_store, get_upload_store

log = logging.getLogger(__name__)
router = APIRouter()


def valid_listing_id(listing_id: str) -> str:
    if not is_valid_id(listing_id):
        raise InvalidListingId()
    return listing_id


def get_ingestion(
    db: AsyncSession = Depends(get_db),
    uploads: LocalObjectStore = Depends(get_upload_store),
    assets: LocalObjectStore = Depends(get_asset_store),
) -> ListingIngestion:
    return ListingIngestion(db, uploads=uploads, assets=assets, max_images=settings.max_image_count)


@asynccontextmanager
async def _read_form(request: Request):
    # One spare slot so an over-limit request reaches our own TooManyImages check.
    # Beyond that the multipart parser stops reading; report it the same way.
    try:
        form = await request.form(
            max_files=settings.max_image_count + 1,
            max_part_size=settings.max_field_size,
        )
    except StarletteHTTPException as e:
        if str(e.detail).startswith("Too many files"):
            raise TooManyImages(settings.max_image_count) from e
        raise
    try:
        yield form
    finally:
        await form.close()


@router.get("/listings", response_model=list[ListingResource])
async def list_listings(db: AsyncSession = Depends(get_db)) -> list[ListingResource]:
    rows = await ListingRepository(db).list_all()
    return [map_listing(r, base_url=settings.assets_base_url) for r in rows]


@router.get("/listings/{listing_id}", response_model=ListingResource)
async def get_listing(
    listing_id: str = Depends(valid_listing_id),
    db: AsyncSession = Depends(get_db),
) -> ListingResource:
    listing = await ListingRepository(db).get(listing_id)
    return map_listing(listing, base_url=settings.assets_base_url)


@router.post("/listings", response_model=ListingOut, status_code=201)
async def create_listing(
    request: Request,
    ingestion: ListingIngestion = Depends(get_ingestion),
    db: AsyncSession = Depends(get_db),
) -> ListingOut:
    async with _read_form(request) as form:
        listing = await ingestion.create(form)

    resp = ListingOut.model_validate(listing)
    try:
        await db.commit()
    except SQLAlchemyError:
        log.exception("create listing failed: commit error")
        raise
    return resp


@router.put("/listings/{listing_id}", response_model=ListingOut, status_code=201)
async def update_listing(
    request: Request,
    listing_id: str = Depends(valid_listing_id),
    ingestion: ListingIngestion = Depends(get_ingestion),
    db: AsyncSession = Depends(get_db),
) -> ListingOut:
    async with _read_form(request) as form:
        listing = await ingestion.update(listing_id, form)

    resp = ListingOut.model_validate(listing)
    try:
        await db.commit()
    except SQLAlchemyError:
        log.exception("update listing failed: commit error listing=%s", listing_id)
        raise
    return resp


# 201 on delete is long-standing client-visible behavior; keep it.
@router.delete("/listings/{listing_id}", response_model=ListingOut, status_code=201)
async def delete_listing(listing_id: str, db: AsyncSession = Depends(get_db)) -> ListingOut:
    listing = await ListingRepository(db).delete(listing_id)
    resp = ListingOut.model_validate(listing)
    await db.commit()
    return resp
