"""
Object storage for uploaded files.

Objects are addressed by key (``documents/{user_id}/{name}``) and kept
under ``INVEST_STORAGE_ROOT``. ``file_url`` values point at
``INVEST_PUBLIC_BASE_URL``, where the storage root is expected to be served.
"""
import logging
import secrets
import time
from functools import lru_cache
from pathlib import Path

from apps.invest.config import get_invest_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class ObjectNotFound(StorageError):
    pass


class LocalObjectStorage:
    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def __repr__(self):
        return f"<LocalObjectStorage {self.root}>"

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    @staticmethod
    def build_key(user_id, extension: str) -> str:
        """documents/{user_id}/{epoch_ms}-{random}{ext}"""
        return f"documents/{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"

    def url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def put(self, key: str, data: bytes) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Stored object {key} ({len(data)} bytes)")
        return self.url(key)

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise ObjectNotFound(f"Object not found: {key}")
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        path.unlink()
        logger.info(f"Deleted object {key}")
        return True


@lru_cache()
def get_storage() -> LocalObjectStorage:
    settings = get_invest_settings()
    return LocalObjectStorage(settings.STORAGE_ROOT, settings.PUBLIC_BASE_URL)
