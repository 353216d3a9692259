"""Object storage gateways for posture photographs.

The API never hands out direct paths to stored objects: readers get a
time-limited signed URL, or a public URL when signing is unavailable and the
bucket allows public reads.
"""
import hashlib
import hmac
import logging
import os
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from urllib.parse import quote

from gym_posture.config import settings
from gym_posture.constants import JPEG_MIME_TYPE
from gym_posture.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorageGateway(ABC):
    """Contract every storage backend implements."""

    @abstractmethod
    def upload(self, key: str, data: bytes, content_type: str = JPEG_MIME_TYPE) -> None:
        ...

    @abstractmethod
    def read(self, key: str) -> bytes:
        ...

    @abstractmethod
    def create_signed_url(self, key: str, expires_in: int) -> str:
        """Return a URL granting read access to ``key`` for ``expires_in`` seconds.

        Raises StorageError when the URL cannot be produced.
        """

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        ...

    @abstractmethod
    def remove(self, keys: list[str]) -> None:
        """Delete objects. Raises StorageError if any of them could not be removed."""


class LocalObjectStorage(ObjectStorageGateway):
    """Filesystem bucket with HMAC-signed download URLs served by the storage router."""

    def __init__(
        self,
        root_dir: str,
        bucket: str,
        signing_secret: str,
        base_url: str,
        public_read: bool = False,
        clock=time.time,
    ):
        self.bucket_dir = os.path.join(root_dir, bucket)
        self.signing_secret = signing_secret
        self.base_url = base_url.rstrip("/")
        self.public_read = public_read
        self._clock = clock

    def _path(self, key: str) -> str:
        if not key or key.startswith("/") or ".." in key.split("/"):
            raise StorageError(f"Invalid storage key: {key!r}")
        return os.path.join(self.bucket_dir, *key.split("/"))

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self.signing_secret.encode(), message, hashlib.sha256).hexdigest()

    def upload(self, key: str, data: bytes, content_type: str = JPEG_MIME_TYPE) -> None:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def read(self, key: str) -> bytes:
        path = self._path(key)
        if not os.path.exists(path):
            raise StorageError(f"Object not found: {key}")
        with open(path, "rb") as f:
            return f.read()

    def exists(self, key: str) -> bool:
        try:
            return os.path.exists(self._path(key))
        except StorageError:
            return False

    def local_path(self, key: str) -> str:
        return self._path(key)

    def create_signed_url(self, key: str, expires_in: int) -> str:
        if not self.exists(key):
            raise StorageError(f"Object not found: {key}")
        expires = int(self._clock()) + expires_in
        signature = self._signature(key, expires)
        return f"{self.base_url}/storage/signed/{quote(key)}?expires={expires}&signature={signature}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        if expires < int(self._clock()):
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    def get_public_url(self, key: str) -> str:
        if not self.public_read:
            raise StorageError(f"Bucket is private, no public URL for {key}")
        return f"{self.base_url}/storage/public/{quote(key)}"

    def remove(self, keys: list[str]) -> None:
        failed = []
        for key in keys:
            try:
                os.remove(self._path(key))
            except FileNotFoundError:
                continue
            except (OSError, StorageError) as e:
                logger.warning("Could not remove %s: %s", key, e)
                failed.append(key)
        if failed:
            raise StorageError(f"Failed to remove {len(failed)} object(s): {', '.join(failed)}")


class S3ObjectStorage(ObjectStorageGateway):
    """S3-compatible bucket using boto3 presigned URLs."""

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            import boto3
            self._client = boto3.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)
        return self._client

    def upload(self, key: str, data: bytes, content_type: str = JPEG_MIME_TYPE) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except Exception as e:
            raise StorageError(f"Upload of {key} failed: {e}") from e

    def read(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except Exception as e:
            raise StorageError(f"Read of {key} failed: {e}") from e

    def create_signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except Exception as e:
            raise StorageError(f"Signing of {key} failed: {e}") from e

    def get_public_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{quote(key)}"

    def remove(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            response = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in keys]},
            )
        except Exception as e:
            raise StorageError(f"Delete request failed: {e}") from e
        errors = response.get("Errors") or []
        if errors:
            failed = ", ".join(err.get("Key", "?") for err in errors)
            raise StorageError(f"Failed to remove {len(errors)} object(s): {failed}")


@lru_cache(maxsize=1)
def get_object_storage() -> ObjectStorageGateway:
    if settings.storage_backend == "s3":
        logger.info("Using S3 object storage, bucket=%s", settings.storage_bucket)
        return S3ObjectStorage(
            bucket=settings.storage_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    return LocalObjectStorage(
        root_dir=settings.storage_dir,
        bucket=settings.storage_bucket,
        signing_secret=settings.storage_signing_secret,
        base_url=settings.public_base_url,
        public_read=settings.storage_public_read,
    )
