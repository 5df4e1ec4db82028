import sqlite3
from datetime import timedelta

import pytest

from codedrop.errors import CodeConflictError
from codedrop.models import TransferRecord
from codedrop.storage import TransferRecordStore
from conftest import T0


def make_record(code: str, expires_in: int = 600, **overrides) -> TransferRecord:
    fields = {
        "code": code,
        "secret": "pw",
        "blob_url": f"/files/raw/{code}.bin",
        "resource_kind": "raw",
        "created_at": T0,
        "expires_at": T0 + timedelta(seconds=expires_in),
    }
    fields.update(overrides)
    return TransferRecord(**fields)


def test_insert_and_find_by_code(repository):
    repository.insert(make_record("123456", secret="Swordfish", resource_kind="video"))

    record = repository.find_by_code("123456")
    assert record.secret == "Swordfish"
    assert record.resource_kind == "video"
    assert record.blob_url == "/files/raw/123456.bin"
    assert record.expires_at.tzinfo is not None
    assert abs(record.expires_at - (T0 + timedelta(seconds=600))) < timedelta(milliseconds=1)


def test_find_by_unknown_code_returns_none(repository):
    assert repository.find_by_code("000000") is None


def test_duplicate_code_raises_conflict(repository):
    repository.insert(make_record("123456"))

    with pytest.raises(CodeConflictError) as excinfo:
        repository.insert(make_record("123456", secret="other"))
    assert excinfo.value.transfer_code == "123456"
    assert repository.find_by_code("123456").secret == "pw"


def test_find_expired_is_strict_and_oldest_first(repository):
    repository.insert(make_record("100002", expires_in=20))
    repository.insert(make_record("100001", expires_in=10))
    repository.insert(make_record("100003", expires_in=30))

    expired = repository.find_expired(T0 + timedelta(seconds=30))

    assert [record.code for record in expired] == ["100001", "100002"]


def test_delete_expired_only_removes_matching_rows(repository):
    repository.insert(make_record("100001", expires_in=10))
    repository.insert(make_record("100002", expires_in=600))

    assert repository.delete_expired(T0 + timedelta(seconds=11)) == 1
    assert repository.find_by_code("100001") is None
    assert repository.find_by_code("100002") is not None
    assert repository.delete_expired(T0 + timedelta(seconds=11)) == 0


def test_schema_has_expiry_index(repository):
    conn = sqlite3.connect(repository.db_path)
    indexes = [row[1] for row in conn.execute("PRAGMA index_list('transfers')").fetchall()]
    conn.close()
    assert "ix_transfers_expires_at" in indexes


def test_blank_resource_kind_reads_back_as_raw(repository):
    conn = sqlite3.connect(repository.db_path)
    conn.execute(
        "INSERT INTO transfers(code, secret, blob_url, resource_kind, created_at, expires_at) VALUES(?, ?, ?, ?, ?, ?)",
        ("654321", "pw", "/files/raw/x", "", T0.timestamp(), T0.timestamp() + 600),
    )
    conn.commit()
    conn.close()

    assert repository.find_by_code("654321").resource_kind == "raw"


def test_repository_satisfies_record_store_protocol(repository):
    assert isinstance(repository, TransferRecordStore)
    assert not isinstance(object(), TransferRecordStore)
