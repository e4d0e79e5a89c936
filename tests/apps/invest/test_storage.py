import re

import pytest

from apps.invest.storage import LocalObjectStorage, ObjectNotFound, StorageError


@pytest.fixture
def store(tmp_path):
    return LocalObjectStorage(str(tmp_path), "http://files.local/")


def test_put_get_delete(store):
    url = store.put("documents/u1/a.csv", b"a,b\n")
    assert url == "http://files.local/documents/u1/a.csv"
    assert store.get("documents/u1/a.csv") == b"a,b\n"

    assert store.delete("documents/u1/a.csv") is True
    assert store.delete("documents/u1/a.csv") is False
    assert not store.exists("documents/u1/a.csv")


def test_missing_object(store):
    with pytest.raises(ObjectNotFound):
        store.get("documents/u1/missing.pdf")


def test_key_cannot_escape_root(store):
    with pytest.raises(StorageError):
        store.put("../outside.txt", b"x")


def test_build_key_format():
    key = LocalObjectStorage.build_key("user-1", ".pdf")
    assert re.fullmatch(r"documents/user-1/\d{13}-[0-9a-f]{8}\.pdf", key)
