from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from codedrop.codes import CodeGenerator
from codedrop.repository import TransferRepository
from codedrop.service import TransferService
from codedrop.storage import BlobLocator, classify_content

T0 = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryBlobStore:
    def __init__(self, fail_put: bool = False, fail_delete: bool = False):
        self.blobs: dict[str, bytes] = {}
        self.fail_put = fail_put
        self.fail_delete = fail_delete
        self.delete_calls: list[tuple[str, str]] = []

    def put_blob(self, data, *, filename=None, content_type=None):
        if self.fail_put:
            raise ConnectionError("blob backend unreachable")
        kind = classify_content(content_type)
        url = f"mem://{kind}/{uuid4().hex}"
        self.blobs[url] = bytes(data)
        return BlobLocator(url=url, resource_kind=kind)

    def delete_blob(self, url, resource_kind="raw"):
        self.delete_calls.append((url, resource_kind))
        if self.fail_delete:
            raise ConnectionError("blob backend unreachable")
        return self.blobs.pop(url, None) is not None

    def get(self, url: str) -> bytes:
        return self.blobs[url]


class ScriptedCodes(CodeGenerator):
    """Hands out a fixed sequence of codes, then repeats the last one."""

    def __init__(self, *codes: str):
        super().__init__(len(codes[0]))
        self._codes = list(codes)

    def generate(self) -> str:
        if len(self._codes) > 1:
            return self._codes.pop(0)
        return self._codes[0]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def repository(tmp_path):
    repo = TransferRepository(str(tmp_path / "transfers.db"))
    repo.init()
    return repo


@pytest.fixture
def service(repository, blobs, clock):
    return TransferService(repository, blobs, clock=clock)
