from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from app.models.audit_log import AuditLog
from app.services.audit import audit
from app.services.errors import TooManyImages, UnexpectedFileField
from app.services.storage import LocalObjectStore

log = logging.getLogger(__name__)

IMAGES_FIELD = "images"

UPLOAD_STORED = "upload.stored"
UPLOAD_ATTACHED = "upload.attached"


@dataclass(frozen=True)
class StoredUpload:
    key: str
    original_filename: str | None
    content_type: str | None
    size: int


@dataclass(frozen=True)
class UploadBatch:
    """
    Output of the upload stage: files already on disk (in request order)
    plus the text fields of the same multipart body, not yet validated.
    """
    files: tuple[StoredUpload, ...]
    fields: Mapping[str, str]

    @property
    def keys(self) -> list[str]:
        return [f.key for f in self.files]


def split_form(form: FormData) -> tuple[list[UploadFile], dict[str, str]]:
    files: list[UploadFile] = []
    fields: dict[str, str] = {}
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            if name != IMAGES_FIELD:
                raise UnexpectedFileField(name)
            files.append(value)
        else:
            # repeated text fields: last one wins
            fields[name] = value
    return files, fields


async def receive_uploads(
    db: AsyncSession,
    form: FormData,
    *,
    store: LocalObjectStore,
    max_images: int,
) -> UploadBatch:
    """
    Persist every `images` file part to temporary storage.

    Runs before field validation: the text fields only exist once the
    multipart body has been consumed. Files written here are not removed if a
    later stage fails; each one gets an `upload.stored` audit row, committed
    right away, so an external sweeper can find files never attached to a
    listing (see `find_orphaned_uploads`).
    """
    files, fields = split_form(form)
    if len(files) > max_images:
        log.warning("upload rejected: %d files > limit %d", len(files), max_images)
        raise TooManyImages(max_images)

    stored: list[StoredUpload] = []
    for upload in files:
        key = uuid.uuid4().hex
        data = await upload.read()
        store.put_bytes(key=key, data=data)
        item = StoredUpload(
            key=key,
            original_filename=upload.filename,
            content_type=upload.content_type,
            size=len(data),
        )
        stored.append(item)
        await audit(
            db,
            action=UPLOAD_STORED,
            target_type="upload",
            target_id=key,
            detail={
                "original_filename": item.original_filename,
                "content_type": item.content_type,
                "size": item.size,
            },
        )

    if stored:
        await db.commit()
        log.info("uploads: stored %d file(s) keys=%s", len(stored), [s.key for s in stored])

    return UploadBatch(files=tuple(stored), fields=MappingProxyType(fields))


async def record_attachments(db: AsyncSession, *, listing_id: str, keys: Iterable[str]) -> None:
    for key in keys:
        await audit(
            db,
            action=UPLOAD_ATTACHED,
            target_type="upload",
            target_id=key,
            detail={"listing_id": listing_id},
        )


async def find_orphaned_uploads(db: AsyncSession, *, older_than: datetime) -> list[str]:
    """
    Upload keys stored before `older_than` that no listing ever referenced.
    Both the raw upload and any `<key>_full.jpg` / `<key>_thumb.jpg` assets
    derived from it are safe to delete.
    """
    attached = select(AuditLog.target_id).where(AuditLog.action == UPLOAD_ATTACHED)
    stmt = (
        select(AuditLog.target_id)
        .where(
            AuditLog.action == UPLOAD_STORED,
            AuditLog.created_at < older_than,
            AuditLog.target_id.not_in(attached),
        )
        .order_by(AuditLog.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())
