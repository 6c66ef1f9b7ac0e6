import io

import pytest
from fastapi import UploadFile

from bucketstore.storage import FileTooLargeError, LocalBucketStorage, is_safe_bucket_name, is_safe_filename


@pytest.fixture
def storage(tmp_path):
    store = LocalBucketStorage(str(tmp_path / "root"))
    store.init()
    return store


def test_name_rules():
    assert is_safe_bucket_name("my-bucket_1.v2")
    assert not is_safe_bucket_name("..")
    assert not is_safe_bucket_name("a/b")
    assert not is_safe_bucket_name("with space")
    assert not is_safe_bucket_name("")

    assert is_safe_filename("holiday photo.jpg")
    assert not is_safe_filename(". .")
    assert not is_safe_filename("..\\evil")
    assert not is_safe_filename("x" * 256)


def test_paths_outside_root_are_refused(storage):
    with pytest.raises(ValueError):
        storage.path_for("../outside.txt")
    with pytest.raises(ValueError):
        storage.create_bucket("owner", "../../escape")


def test_save_file_returns_relative_path(storage):
    storage.create_bucket("owner", "bucket")
    source = UploadFile(file=io.BytesIO(b"abc"), filename="a.png")

    storage_path, size = storage.save_file(
        owner_id="owner", bucket_name="bucket", filename="a.png", source=source, max_size_bytes=10
    )

    assert storage_path == "owner/bucket/a.png"
    assert size == 3
    assert storage.path_for(storage_path).read_bytes() == b"abc"


def test_oversized_save_leaves_existing_file(storage):
    storage.create_bucket("owner", "bucket")
    storage.save_file(
        owner_id="owner",
        bucket_name="bucket",
        filename="a.png",
        source=UploadFile(file=io.BytesIO(b"keep"), filename="a.png"),
        max_size_bytes=10,
    )

    with pytest.raises(FileTooLargeError):
        storage.save_file(
            owner_id="owner",
            bucket_name="bucket",
            filename="a.png",
            source=UploadFile(file=io.BytesIO(b"x" * 11), filename="a.png"),
            max_size_bytes=10,
        )

    bucket_dir = storage.root / "owner" / "bucket"
    assert [p.name for p in bucket_dir.iterdir()] == ["a.png"]
    assert (bucket_dir / "a.png").read_bytes() == b"keep"


def test_rename_bucket(storage):
    storage.create_bucket("owner", "old")
    storage.create_bucket("owner", "taken")

    with pytest.raises(FileExistsError):
        storage.rename_bucket("owner", "old", "taken")

    storage.rename_bucket("owner", "old", "new")
    assert not (storage.root / "owner" / "old").exists()
    assert (storage.root / "owner" / "new").is_dir()


def test_delete_is_tolerant_of_missing_paths(storage):
    storage.delete_bucket("owner", "never-created")
    storage.delete_file("owner/never-created/file.png")

    storage.create_bucket("owner", "full")
    (storage.root / "owner" / "full" / "f.png").write_bytes(b"x")
    storage.delete_bucket("owner", "full")
    assert not (storage.root / "owner" / "full").exists()
