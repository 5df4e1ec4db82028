"""Transfer lifecycle: create, fetch and sweep.

The service owns every business rule. The record store and blob store are
injected so tests can substitute fakes. Neither store is touched until input
validation passes, and no record is inserted before its blob is confirmed.
"""

import hmac
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from codedrop.codes import CodeGenerator
from codedrop.errors import (
    CodeConflictError,
    ForbiddenError,
    GoneError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from codedrop.models import TransferRecord
from codedrop.repository import utc_now
from codedrop.storage import BlobLocator, BlobStore, TransferRecordStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(seconds=600)
DEFAULT_MAX_UPLOAD_SIZE = 20 * 1024 * 1024


def secrets_match(expected: str, supplied: str) -> bool:
    """Exact, case-sensitive comparison in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class TransferService:
    def __init__(
        self,
        records: TransferRecordStore,
        blobs: BlobStore,
        codes: CodeGenerator | None = None,
        *,
        ttl: timedelta = DEFAULT_TTL,
        max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
        code_attempts: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        if code_attempts < 1:
            raise ValueError("code_attempts must be >= 1")
        self.records = records
        self.blobs = blobs
        self.codes = codes or CodeGenerator()
        self.ttl = ttl
        self.max_upload_size = max_upload_size
        self.code_attempts = code_attempts
        self.clock = clock

    def create_transfer(
        self,
        data: bytes | None,
        secret: str | None,
        *,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> str:
        if not data or not secret:
            raise ValidationError("file and secret word are required")
        if len(data) > self.max_upload_size:
            raise ValidationError("file exceeds max upload size")

        try:
            locator = self.blobs.put_blob(data, filename=filename, content_type=content_type)
        except Exception as exc:
            logger.exception("blob upload failed")
            raise StorageError("upload failed") from exc

        try:
            record = self._insert_record(secret, locator)
        except BaseException:
            self._discard_blob(locator)
            raise

        logger.info(
            "transfer created",
            extra={"code": record.code, "resource_kind": record.resource_kind},
        )
        return record.code

    def _insert_record(self, secret: str, locator: BlobLocator) -> TransferRecord:
        for attempt in range(1, self.code_attempts + 1):
            now = self.clock()
            record = TransferRecord(
                code=self.codes.generate(),
                secret=secret,
                blob_url=locator.url,
                resource_kind=locator.resource_kind or "raw",
                created_at=now,
                expires_at=now + self.ttl,
            )
            try:
                self.records.insert(record)
            except CodeConflictError:
                logger.info("code collision on attempt %d/%d", attempt, self.code_attempts)
                continue
            except Exception as exc:
                logger.exception("transfer record insert failed")
                raise StorageError("upload failed") from exc
            return record

        logger.error("no free transfer code after %d attempts", self.code_attempts)
        raise StorageError("upload failed")

    def _discard_blob(self, locator: BlobLocator) -> None:
        try:
            self.blobs.delete_blob(locator.url, locator.resource_kind or "raw")
        except Exception:
            logger.warning("orphaned blob left behind: %s", locator.url, exc_info=True)

    def fetch_transfer(self, code: str | None, secret: str | None) -> BlobLocator:
        if not code or not secret:
            raise ValidationError("code and secret word are required")

        try:
            record = self.records.find_by_code(code)
        except Exception as exc:
            logger.exception("transfer lookup failed")
            raise StorageError("download failed") from exc

        if record is None:
            logger.info("fetch rejected: unknown code")
            raise NotFoundError("Invalid code.")
        if not secrets_match(record.secret, secret):
            logger.info("fetch rejected: secret mismatch", extra={"code": code})
            raise ForbiddenError("Secret word mismatch.")
        if self.clock() > record.expires_at:
            logger.info("fetch rejected: expired", extra={"code": code})
            raise GoneError("Code expired.")

        return BlobLocator(url=record.blob_url, resource_kind=record.resource_kind)

    def sweep_expired(self) -> int:
        try:
            expired = self.records.find_expired(self.clock())
        except Exception as exc:
            logger.exception("expired transfer query failed")
            raise StorageError("cleanup failed") from exc

        for record in expired:
            try:
                self.blobs.delete_blob(record.blob_url, record.resource_kind or "raw")
            except Exception:
                logger.warning(
                    "blob delete failed for %s", record.blob_url, exc_info=True
                )

        # Predicate is re-evaluated: rows that expired since the query go too.
        try:
            deleted = self.records.delete_expired(self.clock())
        except Exception as exc:
            logger.exception("expired transfer delete failed")
            raise StorageError("cleanup failed") from exc

        logger.debug("deleted %d expired transfer rows", deleted)
        return len(expired)
