from __future__ import annotations
from pathlib import Path

from app.core.config import settings


class LocalObjectStore:
    """
    Flat key -> file store rooted at one directory.

    Used twice: once for raw uploads (temporary, swept externally) and once
    for transformed image assets (durable, served under /assets).
    """

    def __init__(self, base_dir: str | Path):
        self.base = Path(base_dir)
        self.base.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        path = (self.base / key).resolve()
        if self.base.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes base dir: {key!r}")
        return path

    def put_bytes(self, *, key: str, data: bytes) -> Path:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


def get_upload_store() -> LocalObjectStore:
    return LocalObjectStore(settings.uploads_dir)


def get_asset_store() -> LocalObjectStore:
    return LocalObjectStore(settings.assets_dir)
