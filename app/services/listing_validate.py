from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError

from app.schemas.listing import ListingSubmission
from app.services.errors import InvalidListingFields
from app.services.uploads import UploadBatch

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionValidationResult:
    ok: bool
    submission: ListingSubmission | None
    errors: list[dict[str, Any]]


@dataclass(frozen=True)
class ValidatedSubmission:
    submission: ListingSubmission
    uploads: UploadBatch


def validate_submission_fields(fields: Mapping[str, Any]) -> SubmissionValidationResult:
    try:
        obj = ListingSubmission.model_validate(dict(fields))
    except ValidationError as e:
        return SubmissionValidationResult(
            ok=False,
            submission=None,
            errors=e.errors(include_url=False, include_context=False),
        )
    return SubmissionValidationResult(ok=True, submission=obj, errors=[])


def validate_submission(batch: UploadBatch) -> ValidatedSubmission:
    """
    Validate the text fields carried by an upload batch.
    Raises InvalidListingFields (400); files already in `batch` stay on disk.
    """
    res = validate_submission_fields(batch.fields)
    if not res.ok:
        log.warning(
            "validation failed: %d error(s), leaving %d upload(s) unattached",
            len(res.errors),
            len(batch.files),
        )
        raise InvalidListingFields(res.errors)

    assert res.submission is not None
    return ValidatedSubmission(submission=res.submission, uploads=batch)
