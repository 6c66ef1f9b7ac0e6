import logging
import re
import shutil
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

logger = logging.getLogger(__name__)

BUCKET_NAME_RE = re.compile(r"^[A-Za-z0-9._-]{1,255}$")
FILENAME_RE = re.compile(r"^[A-Za-z0-9._ -]{1,255}$")


def is_safe_bucket_name(name: str) -> bool:
    return bool(BUCKET_NAME_RE.match(name)) and name.strip(".") != ""


def is_safe_filename(name: str) -> bool:
    return bool(FILENAME_RE.match(name)) and name.strip(". ") != ""


class FileTooLargeError(ValueError):
    pass


class LocalBucketStorage:
    def __init__(self, root_dir: str):
        self.root = Path(root_dir)

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, *parts: str) -> Path:
        path = self.root.joinpath(*parts)
        if not path.resolve().is_relative_to(self.root.resolve()):
            raise ValueError(f"path escapes storage root: {'/'.join(parts)}")
        return path

    def bucket_prefix(self, owner_id: str, bucket_name: str) -> str:
        return f"{owner_id}/{bucket_name}/"

    def file_key(self, owner_id: str, bucket_name: str, filename: str) -> str:
        return self.bucket_prefix(owner_id, bucket_name) + filename

    def path_for(self, storage_path: str) -> Path:
        return self._resolve(*storage_path.split("/"))

    def create_bucket(self, owner_id: str, bucket_name: str) -> Path:
        bucket_dir = self._resolve(owner_id, bucket_name)
        bucket_dir.mkdir(parents=True, exist_ok=True)
        return bucket_dir

    def rename_bucket(self, owner_id: str, old_name: str, new_name: str) -> None:
        old_dir = self._resolve(owner_id, old_name)
        new_dir = self._resolve(owner_id, new_name)
        if new_dir.exists():
            raise FileExistsError(f"bucket directory already exists: {new_name}")
        if not old_dir.exists():
            logger.warning("bucket directory %s missing on rename, creating %s", old_dir, new_dir)
            new_dir.mkdir(parents=True)
            return
        old_dir.rename(new_dir)

    def delete_bucket(self, owner_id: str, bucket_name: str) -> None:
        bucket_dir = self._resolve(owner_id, bucket_name)
        if not bucket_dir.exists():
            logger.warning("bucket directory %s already gone", bucket_dir)
            return
        shutil.rmtree(bucket_dir)

    def save_file(
        self,
        *,
        owner_id: str,
        bucket_name: str,
        filename: str,
        source: UploadFile,
        max_size_bytes: int,
    ) -> tuple[str, int]:
        storage_path = self.file_key(owner_id, bucket_name, filename)
        target = self.path_for(storage_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f".{uuid4().hex}.part")

        # the target is only replaced once the whole upload fits
        total = 0
        try:
            with partial.open("wb") as f:
                while True:
                    chunk = source.file.read(1024 * 1024)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > max_size_bytes:
                        raise FileTooLargeError("File exceeds max upload size")
                    f.write(chunk)
            partial.replace(target)
        finally:
            partial.unlink(missing_ok=True)
        return storage_path, total

    def delete_file(self, storage_path: str) -> None:
        path = self.path_for(storage_path)
        if not path.exists():
            logger.warning("file %s already gone from disk", path)
            return
        path.unlink()
