from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from app.core.config import settings
from app.schemas.listing import ListingSubmission
from app.services.errors import ImageTransformFailed
from app.services.listing_validate import ValidatedSubmission
from app.services.storage import LocalObjectStore

log = logging.getLogger(__name__)

# Pillow raises these for unreadable / truncated / hostile files
_IMAGE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


@dataclass(frozen=True)
class ImageVariant:
    suffix: str
    width: int
    quality: int


@dataclass(frozen=True)
class TransformedSubmission:
    submission: ListingSubmission
    images: tuple[str, ...]


def default_variants() -> tuple[ImageVariant, ...]:
    return (
        ImageVariant(suffix="_full.jpg", width=settings.full_image_width, quality=settings.full_image_quality),
        ImageVariant(suffix="_thumb.jpg", width=settings.thumbnail_width, quality=settings.thumbnail_quality),
    )


def _ensure_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha: flatten onto white
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return img.convert("RGB")


def _fit_width(img: Image.Image, width: int) -> Image.Image:
    """Scale down to `width`, keeping aspect ratio. Never upscales."""
    if img.width <= width:
        return img
    height = max(1, round(img.height * width / img.width))
    return img.resize((width, height), Image.Resampling.LANCZOS)


class UnreadableImage(Exception):
    """The upload could not be decoded or resized as an image."""


def _discard(assets: LocalObjectStore, keys: list[str]) -> None:
    for k in keys:
        try:
            assets.delete(k)
        except OSError as e:
            log.warning("could not remove asset %s: %s", k, e)


def _decode(source: Path) -> Image.Image:
    try:
        with Image.open(source) as img:
            img.load()
            return _ensure_rgb(img)
    except _IMAGE_ERRORS as e:
        raise UnreadableImage(str(e)) from e


def render_variants(
    source: Path,
    key: str,
    assets: LocalObjectStore,
    variants: tuple[ImageVariant, ...],
) -> list[str]:
    """
    Write one JPEG per variant as `<key><suffix>`; returns the asset keys.

    Decode and resize failures raise UnreadableImage. Errors writing into
    asset storage propagate unchanged. Either way nothing written by this
    call is left behind.
    """
    rgb = _decode(source)
    written: list[str] = []
    try:
        for v in variants:
            try:
                resized = _fit_width(rgb, v.width)
            except _IMAGE_ERRORS as e:
                raise UnreadableImage(str(e)) from e
            out_key = f"{key}{v.suffix}"
            # recorded first so a partially written file is cleaned up too
            written.append(out_key)
            resized.save(assets.path_for(out_key), format="JPEG", quality=v.quality, optimize=True)
    except Exception:
        _discard(assets, written)
        raise
    return written


async def transform_images(
    validated: ValidatedSubmission,
    *,
    uploads: LocalObjectStore,
    assets: LocalObjectStore,
    variants: tuple[ImageVariant, ...] | None = None,
) -> TransformedSubmission:
    """
    Normalize every upload into asset storage, preserving order, then drop
    the raw uploads. Any bad file fails the whole batch and removes every
    asset this call produced. Never touches the database.

    An unreadable upload is the client's fault (ImageTransformFailed, 400);
    a failure writing assets is a storage fault and is re-raised as is.
    """
    variants = variants or default_variants()
    files = validated.uploads.files

    written: list[str] = []
    for f in files:
        try:
            written += await asyncio.to_thread(render_variants, uploads.path_for(f.key), f.key, assets, variants)
        except UnreadableImage as e:
            log.warning("image transform failed: upload=%s error=%s", f.key, e)
            _discard(assets, written)
            raise ImageTransformFailed() from e
        except Exception:
            log.exception("asset write failed: upload=%s", f.key)
            _discard(assets, written)
            raise

    for f in files:
        uploads.delete(f.key)

    if files:
        log.info("images: transformed %d upload(s) into %d asset(s)", len(files), len(written))

    return TransformedSubmission(
        submission=validated.submission,
        images=tuple(f.key for f in files),
    )
