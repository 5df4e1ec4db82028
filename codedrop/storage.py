import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import uuid4

from codedrop.models import TransferRecord

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("raw", "image", "video")


@dataclass(frozen=True)
class BlobLocator:
    url: str
    resource_kind: str = "raw"


@runtime_checkable
class BlobStore(Protocol):
    """Where transfer payloads live.

    Deletion must be idempotent: deleting a missing blob returns ``False``.
    """

    def put_blob(
        self,
        data: bytes,
        *,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> BlobLocator: ...

    def delete_blob(self, url: str, resource_kind: str = "raw") -> bool: ...


@runtime_checkable
class TransferRecordStore(Protocol):
    """Persistent transfer records keyed by code.

    Insert-only: ``insert`` raises ``CodeConflictError`` when the code is
    taken, and rows leave only through ``delete_expired``.
    """

    def insert(self, record: TransferRecord) -> None: ...

    def find_by_code(self, code: str) -> TransferRecord | None: ...

    def find_expired(self, before: datetime) -> list[TransferRecord]: ...

    def delete_expired(self, before: datetime) -> int: ...


def classify_content(content_type: str | None) -> str:
    major = (content_type or "").split("/", 1)[0].strip().lower()
    if major == "image":
        return "image"
    if major in ("video", "audio"):
        return "video"
    return "raw"


def public_id_from_url(url: str) -> str:
    """Last path segment of a locator, query string stripped."""
    return url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


def _is_plain_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


class LocalBlobStore:
    def __init__(self, root_dir: str, public_path: str = "/files"):
        self.root = Path(root_dir)
        self.public_path = public_path.rstrip("/")

    def init(self) -> None:
        for kind in RESOURCE_KINDS:
            (self.root / kind).mkdir(parents=True, exist_ok=True)

    def _kind_dir(self, kind: str) -> Path:
        kind_path = self.root / kind
        kind_path.mkdir(parents=True, exist_ok=True)
        return kind_path

    def put_blob(
        self,
        data: bytes,
        *,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> BlobLocator:
        kind = classify_content(content_type)
        suffix = Path(filename or "").suffix
        name = f"{uuid4().hex}{suffix}"
        target = self._kind_dir(kind) / name
        target.write_bytes(data)
        logger.debug("stored blob %s (%d bytes)", name, len(data))
        return BlobLocator(url=f"{self.public_path}/{kind}/{name}", resource_kind=kind)

    def open_blob(self, resource_kind: str, name: str) -> Path | None:
        if resource_kind not in RESOURCE_KINDS or not _is_plain_name(name):
            return None
        path = self.root / resource_kind / name
        return path if path.is_file() else None

    def delete_blob(self, url: str, resource_kind: str = "raw") -> bool:
        name = public_id_from_url(url)
        if resource_kind not in RESOURCE_KINDS or not _is_plain_name(name):
            raise ValueError(f"cannot delete blob {url!r} of kind {resource_kind!r}")
        path = self.root / resource_kind / name
        if not path.exists():
            return False
        path.unlink()
        return True
