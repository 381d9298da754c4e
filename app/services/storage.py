import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from app.core.errors import ConflictError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class StoredObject:
    name: str
    size: int


@dataclass
class Bucket:
    name: str
    file_size_limit: Optional[int] = None  # bytes, None = unlimited


class StorageService:
    """
    Object store kept on the local filesystem: one sub-directory per bucket,
    one flat file per object.
    """

    def __init__(self, base_path: str = "./storage", buckets: Optional[List[Bucket]] = None):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._buckets: Dict[str, Bucket] = {}
        for bucket in buckets or []:
            self.ensure_bucket(bucket.name, bucket.file_size_limit)

    # ---------- buckets ----------

    def ensure_bucket(self, name: str, file_size_limit: Optional[int] = None) -> Bucket:
        """
        Create the bucket if missing. An existing bucket is not an error.
        """
        self._check_name(name)
        path = self.base_path / name
        if not path.exists():
            logger.info("Creating bucket %s", name)
        path.mkdir(parents=True, exist_ok=True)
        bucket = Bucket(name=name, file_size_limit=file_size_limit)
        self._buckets[name] = bucket
        return bucket

    def list_buckets(self) -> List[str]:
        return sorted(p.name for p in self.base_path.iterdir() if p.is_dir())

    # ---------- objects ----------

    def list(self, bucket: str) -> List[StoredObject]:
        """
        Objects of a bucket, sorted by name.
        """
        root = self._bucket_path(bucket)
        try:
            entries = [StoredObject(name=f.name, size=f.stat().st_size) for f in root.iterdir() if f.is_file()]
        except OSError as e:
            raise UpstreamError("Failed to list storage files", details=str(e))
        return sorted(entries, key=lambda o: o.name)

    def exists(self, bucket: str, name: str) -> bool:
        return self.object_path(bucket, name).is_file()

    def object_path(self, bucket: str, name: str) -> Path:
        self._check_name(name)
        return self._bucket_path(bucket) / name

    def upload(self, bucket: str, name: str, data: bytes, upsert: bool = False) -> str:
        """
        Store ``data`` under ``name``. Without ``upsert`` an existing object is a conflict.
        """
        limit = self._buckets.get(bucket, Bucket(bucket)).file_size_limit
        if limit is not None and len(data) > limit:
            raise ValidationError(
                f"File too large (max {limit // MB} MB)",
                details={"bucket": bucket, "size": len(data)},
                status_code=413,
            )

        path = self.object_path(bucket, name)
        if path.exists() and not upsert:
            raise ConflictError("The resource already exists", details={"bucket": bucket, "name": name})

        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise UpstreamError("Failed to upload file", details=str(e))
        return name

    def download(self, bucket: str, name: str) -> bytes:
        path = self.object_path(bucket, name)
        if not path.is_file():
            raise NotFoundError("Object not found", details={"bucket": bucket, "name": name})
        try:
            return path.read_bytes()
        except OSError as e:
            raise UpstreamError("Failed to download file", details=str(e))

    # ---------- internals ----------

    def _bucket_path(self, bucket: str) -> Path:
        self._check_name(bucket)
        path = self.base_path / bucket
        if not path.is_dir():
            raise NotFoundError("Bucket not found", details={"bucket": bucket})
        return path

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ValidationError("Invalid object name", details={"name": name})
