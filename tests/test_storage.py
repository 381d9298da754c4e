import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.services.storage import MB, Bucket, StorageService


@pytest.fixture
def storage(tmp_path):
    return StorageService(base_path=str(tmp_path), buckets=[Bucket("books", 1 * MB), Bucket("output")])


def test_buckets_are_created_once(storage, tmp_path):
    storage.ensure_bucket("books")
    assert storage.list_buckets() == ["books", "output"]


def test_list_is_sorted_by_name(storage):
    for name in ("b.pdf", "a.pdf", "C.pdf"):
        storage.upload("books", name, b"x")
    assert [o.name for o in storage.list("books")] == ["C.pdf", "a.pdf", "b.pdf"]


def test_upload_without_upsert_refuses_overwrite(storage):
    storage.upload("output", "f.csv", b"one")
    with pytest.raises(ConflictError):
        storage.upload("output", "f.csv", b"two")
    storage.upload("output", "f.csv", b"two", upsert=True)
    assert storage.download("output", "f.csv") == b"two"


def test_size_limit(storage):
    with pytest.raises(ValidationError) as exc:
        storage.upload("books", "big.pdf", b"0" * (MB + 1))
    assert exc.value.status_code == 413


@pytest.mark.parametrize("name", ["../evil.pdf", "a/b.pdf", "", ".."])
def test_object_names_cannot_escape_the_bucket(storage, name):
    with pytest.raises(ValidationError):
        storage.upload("books", name, b"x")


def test_missing_object_and_bucket(storage):
    with pytest.raises(NotFoundError):
        storage.download("books", "nope.pdf")
    with pytest.raises(NotFoundError):
        storage.list("archive")
