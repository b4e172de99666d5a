from __future__ import annotations

from typing import Any

from fastapi import HTTPException


class TooManyImages(HTTPException):
    def __init__(self, limit: int):
        super().__init__(status_code=400, detail=f"Too many images. At most {limit} allowed.")


class UnexpectedFileField(HTTPException):
    def __init__(self, field: str):
        super().__init__(status_code=400, detail=f"Unexpected file field: {field}")


class InvalidListingFields(HTTPException):
    def __init__(self, errors: list[dict[str, Any]]):
        super().__init__(status_code=400, detail={"errors": errors})


class ImageTransformFailed(HTTPException):
    def __init__(self):
        super().__init__(status_code=400, detail="Invalid image.")


class InvalidCategory(HTTPException):
    def __init__(self):
        super().__init__(status_code=400, detail="Invalid category.")


class InvalidUser(HTTPException):
    def __init__(self):
        super().__init__(status_code=400, detail="Invalid user.")


class InvalidListingId(HTTPException):
    def __init__(self):
        super().__init__(status_code=404, detail="Invalid ID.")


class ListingNotFound(HTTPException):
    def __init__(self):
        super().__init__(status_code=404, detail="The listing with the given ID was not found.")
