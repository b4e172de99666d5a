import json
from types import MappingProxyType

import pytest
from PIL import Image

from app.core.ids import gen_id
from app.schemas.listing import CategorySnapshot, ListingSubmission, SellerSnapshot
from app.services.enrichment import EnrichedSubmission
from app.services.errors import ImageTransformFailed, InvalidListingFields
from app.services.images import ImageVariant, transform_images
from app.services.listing_assembler import assemble_listing
from app.services.listing_validate import ValidatedSubmission, validate_submission, validate_submission_fields
from app.services.uploads import StoredUpload, UploadBatch
from fixtures_seed import png_bytes


def _fields(**overrides) -> dict:
    data = {
        "title": "Lamp",
        "price": "5",
        "categoryId": gen_id("cat"),
        "userId": gen_id("usr"),
    }
    data.update(overrides)
    return data


def _submission(**overrides) -> ListingSubmission:
    return ListingSubmission.model_validate(_fields(**overrides))


def _enriched(sub: ListingSubmission, images: tuple[str, ...]) -> EnrichedSubmission:
    return EnrichedSubmission(
        submission=sub,
        images=images,
        category=CategorySnapshot(id=sub.category_id, label="Lamps"),
        seller=SellerSnapshot(id=sub.user_id, name="S", email="s@test.com", listing_count=4),
    )


def _batch(store, payloads: list[bytes]) -> UploadBatch:
    files = []
    for i, data in enumerate(payloads):
        key = f"{i:032x}"
        store.put_bytes(key=key, data=data)
        files.append(StoredUpload(key=key, original_filename=f"{i}.png", content_type="image/png", size=len(data)))
    return UploadBatch(files=tuple(files), fields=MappingProxyType(_fields()))


# --- validator ---

def test_validator_accepts_minimal_fields():
    res = validate_submission_fields(_fields())
    assert res.ok
    assert res.submission.price == 5.0
    assert res.submission.location is None
    assert res.submission.old_images is None


def test_validator_decodes_wire_json():
    res = validate_submission_fields(
        _fields(location=json.dumps({"latitude": 1.5, "longitude": "2"}), oldImages=json.dumps(["a", "b"]))
    )
    assert res.ok, res.errors
    assert res.submission.location.longitude == 2.0
    assert res.submission.old_images == ["a", "b"]


@pytest.mark.parametrize(
    "overrides, loc",
    [
        ({"title": ""}, "title"),
        ({"price": "0.5"}, "price"),
        ({"categoryId": "abc"}, "categoryId"),
        ({"oldImages": json.dumps([1, 2])}, "oldImages"),
        ({"oldImages": json.dumps({"a": 1})}, "oldImages"),
        ({"location": json.dumps({"latitude": 1})}, "location"),
    ],
)
def test_validator_rejects(overrides, loc):
    res = validate_submission_fields(_fields(**overrides))
    assert not res.ok
    assert res.errors[0]["loc"][0] == loc


def test_validator_requires_title_price_and_ids():
    res = validate_submission_fields({})
    assert not res.ok
    assert {e["loc"][0] for e in res.errors} == {"title", "price", "categoryId", "userId"}


def test_validate_submission_raises_and_keeps_batch(tmp_path):
    batch = UploadBatch(files=(), fields=MappingProxyType({"title": "x"}))
    with pytest.raises(InvalidListingFields) as exc:
        validate_submission(batch)
    assert exc.value.status_code == 400
    assert exc.value.detail["errors"]


# --- assembler ---

def test_assemble_create_ignores_old_images():
    sub = _submission(oldImages=json.dumps(["old"]))
    values = assemble_listing(_enriched(sub, ("new",)), mode="create")
    assert values["images"] == [{"file_name": "new"}]
    assert values["price"] == 5.0
    assert values["added_by"]["listing_count"] == 4
    assert values["added_by_id"] == sub.user_id
    assert values["category"]["label"] == "Lamps"


def test_assemble_update_appends_retained_after_new():
    sub = _submission(oldImages=json.dumps(["a", "b"]))
    values = assemble_listing(_enriched(sub, ("c",)), mode="update")
    assert [i["file_name"] for i in values["images"]] == ["c", "a", "b"]


def test_assemble_update_does_not_dedup():
    sub = _submission(oldImages=json.dumps(["a", "a"]))
    values = assemble_listing(_enriched(sub, ("a",)), mode="update")
    assert [i["file_name"] for i in values["images"]] == ["a", "a", "a"]


def test_assemble_update_without_old_images_or_uploads_is_empty():
    values = assemble_listing(_enriched(_submission(), ()), mode="update")
    assert values["images"] == []
    assert values["location"] is None


def test_assemble_location_object():
    sub = _submission(location=json.dumps({"latitude": 10, "longitude": 20}))
    values = assemble_listing(_enriched(sub, ()), mode="create")
    assert values["location"] == {"latitude": 10.0, "longitude": 20.0}


def test_snapshots_are_frozen():
    snap = CategorySnapshot(id="cat_x", label="A")
    with pytest.raises(Exception):
        snap.label = "B"


# --- image transform ---

@pytest.mark.asyncio
async def test_transform_preserves_order_and_replaces_originals(upload_store, asset_store):
    batch = _batch(upload_store, [png_bytes(300, 200), png_bytes(50, 40)])
    validated = ValidatedSubmission(submission=_submission(), uploads=batch)
    variants = (ImageVariant("_full.jpg", 120, 50), ImageVariant("_thumb.jpg", 30, 30))

    out = await transform_images(validated, uploads=upload_store, assets=asset_store, variants=variants)

    assert out.images == tuple(batch.keys)
    assert list(upload_store.base.iterdir()) == []

    first, second = batch.keys
    with Image.open(asset_store.path_for(f"{first}_full.jpg")) as img:
        assert img.format == "JPEG"
        assert img.size == (120, 80)
    with Image.open(asset_store.path_for(f"{first}_thumb.jpg")) as img:
        assert img.size == (30, 20)
    # smaller than the target width: not upscaled
    with Image.open(asset_store.path_for(f"{second}_full.jpg")) as img:
        assert img.size == (50, 40)


@pytest.mark.asyncio
async def test_transform_failure_discards_partial_output(upload_store, asset_store):
    batch = _batch(upload_store, [png_bytes(), b"garbage"])
    validated = ValidatedSubmission(submission=_submission(), uploads=batch)

    with pytest.raises(ImageTransformFailed):
        await transform_images(validated, uploads=upload_store, assets=asset_store)

    assert list(asset_store.base.iterdir()) == []
    # raw uploads are left for the sweeper
    assert sorted(p.name for p in upload_store.base.iterdir()) == sorted(batch.keys)


@pytest.mark.asyncio
async def test_transform_with_no_uploads(upload_store, asset_store):
    batch = UploadBatch(files=(), fields=MappingProxyType({}))
    validated = ValidatedSubmission(submission=_submission(), uploads=batch)
    out = await transform_images(validated, uploads=upload_store, assets=asset_store)
    assert out.images == ()


@pytest.mark.asyncio
async def test_asset_write_failure_is_not_reported_as_bad_image(upload_store, asset_store):
    batch = _batch(upload_store, [png_bytes()])
    (key,) = batch.keys
    # a directory where the thumbnail should go makes the save fail
    asset_store.path_for(f"{key}_thumb.jpg").mkdir()
    validated = ValidatedSubmission(submission=_submission(), uploads=batch)

    with pytest.raises(OSError):
        await transform_images(validated, uploads=upload_store, assets=asset_store)

    assert not asset_store.exists(f"{key}_full.jpg")
    assert sorted(p.name for p in upload_store.base.iterdir()) == [key]
