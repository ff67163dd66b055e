"""
Vector snapshot encoding, encryption and file persistence.
"""

import os

import numpy as np
import pytest

from auto_triage.core.errors import SnapshotError
from auto_triage.vector import VectorDatabase, VectorRecord
from auto_triage.vector.database import snapshot_persister
from auto_triage.vector.snapshot import (
    _decrypt_data,
    _encrypt_data,
    decode_snapshot,
    encode_snapshot,
    read_snapshot,
    write_snapshot,
)

SAMPLE = {"collections": {"issues": {"records": [
    {"id": "1", "content": "Title: a", "metadata": {"idKey": "1", "labels": "[]"}, "vector": [0.5, 0.25]}
]}}}


def _database_with_documents(count=3):
    database = VectorDatabase()
    collection = database.get_or_create_collection("issues")
    collection.batch_add([
        VectorRecord(id=str(i), vector=np.array([1.0, float(i)], dtype=np.float32),
                     metadata={"idKey": str(i), "labels": "[]"}, content=f"doc {i}")
        for i in range(1, count + 1)
    ])
    return database


def test_encryption_decryption():
    """Test AES-256-GCM encryption and decryption."""
    key = os.urandom(32)
    data = b"Hello, secure world!"

    encrypted = _encrypt_data(data, key)

    assert encrypted != data
    assert _decrypt_data(encrypted, key) == data


def test_encryption_wrong_key():
    """Test that wrong key fails decryption."""
    encrypted = _encrypt_data(b"Secret message", os.urandom(32))

    with pytest.raises(SnapshotError):
        _decrypt_data(encrypted, os.urandom(32))


def test_plain_snapshot():
    blob = encode_snapshot(SAMPLE)
    assert blob.startswith(b"ATVS")
    assert decode_snapshot(blob) == SAMPLE


def test_encrypted_snapshot():
    blob = encode_snapshot(SAMPLE, key="super-strong-key")

    assert decode_snapshot(blob, key="super-strong-key") == SAMPLE
    with pytest.raises(SnapshotError):
        decode_snapshot(blob, key="wrong-key")
    with pytest.raises(SnapshotError, match="no key"):
        decode_snapshot(blob)


def test_encrypted_snapshots_use_fresh_salt():
    assert encode_snapshot(SAMPLE, key="k") != encode_snapshot(SAMPLE, key="k")


def test_corrupted_snapshot():
    with pytest.raises(SnapshotError):
        decode_snapshot(b"not a snapshot")
    with pytest.raises(SnapshotError):
        decode_snapshot(b"ATVS\x01\x00garbage")
    with pytest.raises(SnapshotError, match="version"):
        decode_snapshot(b"ATVS\x09\x00")


def test_write_and_read_snapshot(tmp_path):
    path = str(tmp_path / "nested" / "vector.db")

    size = write_snapshot(path, SAMPLE, key="k")

    assert os.path.getsize(path) == size
    assert read_snapshot(path, key="k") == SAMPLE
    # No temporary files left behind
    assert os.listdir(tmp_path / "nested") == ["vector.db"]


def test_read_missing_snapshot(tmp_path):
    with pytest.raises(SnapshotError):
        read_snapshot(str(tmp_path / "missing.db"))


def test_database_export_import_round_trip(tmp_path):
    path = str(tmp_path / "vector.db")
    database = _database_with_documents()

    database.export_to_file(path, key="k")

    restored = VectorDatabase()
    restored.import_from_file(path, key="k")
    collection = restored.get_collection("issues")
    assert collection.count() == 3
    assert collection.get("2").content == "doc 2"
    assert collection.get("2").metadata == {"idKey": "2", "labels": "[]"}
    assert collection.search([1.0, 3.0], top_k=1)[0].id == "3"


def test_import_replaces_existing_collections(tmp_path):
    path = str(tmp_path / "vector.db")
    _database_with_documents(1).export_to_file(path)

    database = VectorDatabase()
    database.get_or_create_collection("stale")
    database.import_from_file(path)

    assert database.list_collections() == ["issues"]


def test_restore_missing_file_is_empty(tmp_path):
    database = VectorDatabase()
    assert database.restore(str(tmp_path / "absent.db")) is False
    assert database.list_collections() == []


def test_snapshot_persister(tmp_path):
    path = str(tmp_path / "vector.db")
    database = _database_with_documents(2)

    persist = snapshot_persister(database, path, key="k")
    persist()

    restored = VectorDatabase()
    assert restored.restore(path, key="k") is True
    assert restored.get_collection("issues").count() == 2


def test_import_mixed_vector_widths_raises_snapshot_error(tmp_path):
    path = str(tmp_path / "vector.db")
    write_snapshot(path, {"collections": {"issues": {"records": [
        {"id": "1", "content": "a", "metadata": {}, "vector": [1.0, 0.0]},
        {"id": "2", "content": "b", "metadata": {}, "vector": [1.0, 0.0, 0.0]},
    ]}}})

    database = VectorDatabase()
    database.get_or_create_collection("issues")
    with pytest.raises(SnapshotError) as exc_info:
        database.import_from_file(path)

    assert exc_info.value.stage == "decode"
    assert isinstance(exc_info.value.cause, ValueError)
    # A failed import leaves the current collections in place
    assert database.list_collections() == ["issues"]


def test_import_payload_that_is_not_an_object(tmp_path):
    path = str(tmp_path / "vector.db")
    write_snapshot(path, ["not", "collections"], key="k")

    with pytest.raises(SnapshotError) as exc_info:
        VectorDatabase().import_from_file(path, key="k")

    assert exc_info.value.stage == "decode"


def test_import_record_without_id(tmp_path):
    path = str(tmp_path / "vector.db")
    write_snapshot(path, {"collections": {"issues": {"records": [{"content": "no id"}]}}})

    with pytest.raises(SnapshotError):
        VectorDatabase().import_from_file(path)
