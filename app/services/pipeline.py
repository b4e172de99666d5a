from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData

from app.models.listing import Listing
from app.services.enrichment import SubmissionMode, enrich_submission
from app.services.images import transform_images
from app.services.listing_assembler import assemble_listing
from app.services.listing_validate import validate_submission
from app.services.listings import ListingRepository
from app.services.storage import LocalObjectStore
from app.services.uploads import receive_uploads, record_attachments

log = logging.getLogger(__name__)


class ListingIngestion:
    """
    Create/update pipeline for listings.

    Stage order is fixed by the types each stage accepts:
      receive_uploads -> UploadBatch
      validate_submission(UploadBatch) -> ValidatedSubmission
      transform_images(ValidatedSubmission) -> TransformedSubmission
      enrich_submission(TransformedSubmission) -> EnrichedSubmission
      assemble_listing(EnrichedSubmission) -> row values
    then the repository write. Any stage failure aborts the rest; nothing is
    retried and nothing already written to disk is rolled back.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        uploads: LocalObjectStore,
        assets: LocalObjectStore,
        max_images: int,
    ):
        self.db = db
        self.uploads = uploads
        self.assets = assets
        self.max_images = max_images
        self.repo = ListingRepository(db)

    async def create(self, form: FormData) -> Listing:
        values, new_images = await self._run(form, mode="create")
        listing = await self.repo.create(values)
        await record_attachments(self.db, listing_id=listing.id, keys=new_images)
        return listing

    async def update(self, listing_id: str, form: FormData) -> Listing:
        values, new_images = await self._run(form, mode="update")
        listing = await self.repo.update(listing_id, values)
        await record_attachments(self.db, listing_id=listing.id, keys=new_images)
        return listing

    async def _run(self, form: FormData, *, mode: SubmissionMode) -> tuple[dict, tuple[str, ...]]:
        batch = await receive_uploads(self.db, form, store=self.uploads, max_images=self.max_images)
        validated = validate_submission(batch)
        transformed = await transform_images(validated, uploads=self.uploads, assets=self.assets)
        enriched = await enrich_submission(self.db, transformed, mode=mode)
        values = assemble_listing(enriched, mode=mode)
        log.debug("pipeline(%s): assembled listing with %d image(s)", mode, len(values["images"]))
        return values, transformed.images
