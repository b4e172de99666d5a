from __future__ import annotations

from typing import Any

from app.schemas.listing import ImageRef
from app.services.enrichment import EnrichedSubmission, SubmissionMode


def assemble_listing(enriched: EnrichedSubmission, *, mode: SubmissionMode) -> dict[str, Any]:
    """
    Column values for one listing row.

    Images: freshly transformed ones first; on update the caller-declared
    `oldImages` follow in the order given. Without `oldImages` an update keeps
    only the new images (possibly none). No dedup.
    """
    sub = enriched.submission

    file_names = list(enriched.images)
    if mode == "update" and sub.old_images is not None:
        file_names = file_names + list(sub.old_images)

    return {
        "title": sub.title,
        "description": sub.description,
        "price": float(sub.price),
        "location": sub.location.model_dump() if sub.location else None,
        "images": [ImageRef(file_name=n).model_dump() for n in file_names],
        "category": enriched.category.model_dump(),
        "added_by": enriched.seller.model_dump(),
        "added_by_id": enriched.seller.id,
    }
