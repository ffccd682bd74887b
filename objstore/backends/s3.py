"""S3-compatible storage backend using boto3.

Supports AWS S3, MinIO, and any S3-compatible object storage.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
import tempfile
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Optional, Union

import boto3
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from objstore.base import Content, Endpoint, FileInfo, StorageBackend, StorageObject, normalize_path
from objstore.context import FactoryContext
from objstore.errors import ObjectNotFoundError, StorageIOError
from objstore.registry import register_backend
from objstore.backends.helpers import build_endpoint, normalize_prefix, parse_backend_config

logger = logging.getLogger(__name__)

__all__ = ["S3Config", "S3Storage"]

SPOOL_MAX_SIZE = 8 * 1024 * 1024

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3Config(BaseModel):
    """Configuration bag for the ``s3`` backend."""

    model_config = ConfigDict(extra="forbid")

    bucket: str
    prefix: str = ""
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    endpoint: Optional[Union[str, Dict[str, str]]] = None


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Storage(StorageBackend):
    """S3 storage backend.

    Objects live under ``prefix`` in ``bucket``. S3 has no directories, so
    put() needs no parent creation, list() is a prefix scan and delete()
    of a missing key succeeds.

    Without a configured endpoint, URLs point at the bucket itself
    (virtual-hosted style on AWS, path style on a custom endpoint_url).
    """

    backend_type = "s3"

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        endpoint: Optional[Endpoint] = None,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required for S3 storage")

        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)
        self.region = region

        if client is None:
            client_kwargs: Dict[str, Any] = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key_id and secret_access_key:
                client_kwargs["aws_access_key_id"] = access_key_id
                client_kwargs["aws_secret_access_key"] = secret_access_key
                if session_token:
                    client_kwargs["aws_session_token"] = session_token
            try:
                client = boto3.client("s3", **client_kwargs)
            except BotoCoreError as e:
                logger.error("Failed to create S3 client: %s", e)
                raise StorageIOError(
                    "Could not create S3 client",
                    storage=self.backend_type,
                    operation="connect",
                    details={"bucket": bucket, "region": region},
                    cause=e,
                ) from e
        self.client = client

        if endpoint is None:
            suffix = "/" + self.prefix if self.prefix else ""
            if endpoint_url:
                endpoint = Endpoint.parse(f"{endpoint_url.rstrip('/')}/{bucket}{suffix}")
            else:
                endpoint = Endpoint("https", f"{bucket}.s3.{region}.amazonaws.com", suffix)
        self.endpoint = endpoint

        logger.info(
            "Initialized S3 storage for s3://%s/%s (endpoint: %s)",
            bucket,
            self.prefix,
            endpoint_url or "default",
        )

    def _object_key(self, path: str) -> str:
        key = normalize_path(path)
        if self.prefix:
            return f"{self.prefix}/{key}" if key else self.prefix
        return key

    def _logical_key(self, object_key: str) -> str:
        if self.prefix and object_key.startswith(self.prefix + "/"):
            return object_key[len(self.prefix) + 1:]
        return object_key

    def _io_error(self, operation: str, path: str, error: BaseException) -> StorageIOError:
        logger.error("S3 %s failed for s3://%s/%s: %s", operation, self.bucket, self._object_key(path), error)
        details = {"bucket": self.bucket}
        if isinstance(error, ClientError):
            details["code"] = _error_code(error)
        return StorageIOError(
            f"S3 {operation} failed for {path!r}",
            storage=self.backend_type,
            operation=operation,
            path=path,
            details=details,
            cause=error,
        )

    def stat(self, path: str) -> Optional[FileInfo]:
        key = self._object_key(path)
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise self._io_error("stat", path, e) from e
        except BotoCoreError as e:
            raise self._io_error("stat", path, e) from e

        logical = self._logical_key(key)
        return FileInfo(
            path=logical,
            name=posixpath.basename(logical),
            size=response.get("ContentLength", 0),
            modified=response.get("LastModified"),
        )

    def get(self, path: str) -> BinaryIO:
        key = self._object_key(path)
        spooled = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        try:
            self.client.download_fileobj(self.bucket, key, spooled)
        except ClientError as e:
            spooled.close()
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"Object not found: {path}",
                    storage=self.backend_type,
                    operation="get",
                    path=path,
                    details={"bucket": self.bucket},
                ) from e
            raise self._io_error("get", path, e) from e
        except BotoCoreError as e:
            spooled.close()
            raise self._io_error("get", path, e) from e

        spooled.seek(0)
        return spooled

    def put(self, path: str, content: Content) -> StorageObject:
        key = self._object_key(path)
        content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        try:
            self.client.upload_fileobj(
                self._as_stream(content),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError, Boto3Error) as e:
            raise self._io_error("put", path, e) from e

        logger.debug("Uploaded s3://%s/%s", self.bucket, key)
        return self._object(self._logical_key(key), datetime.now(timezone.utc))

    def delete(self, path: str) -> None:
        key = self._object_key(path)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._io_error("delete", path, e) from e
        logger.debug("Deleted s3://%s/%s", self.bucket, key)

    def list(self, path: str = "") -> List[StorageObject]:
        base = self._object_key(path)
        scan_prefix = base + "/" if base else ""
        objects: List[StorageObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=scan_prefix):
                for item in page.get("Contents", []):
                    key = item["Key"]
                    if key.endswith("/") or key == base:
                        continue
                    objects.append(self._object(self._logical_key(key), item.get("LastModified")))
        except ClientError as e:
            if _error_code(e) == "NoSuchBucket":
                logger.warning("Bucket %s does not exist", self.bucket)
                return []
            raise self._io_error("list", path, e) from e
        except BotoCoreError as e:
            raise self._io_error("list", path, e) from e

        logger.debug("Listed %d objects under s3://%s/%s", len(objects), self.bucket, scan_prefix)
        return objects

    def get_endpoint(self) -> Endpoint:
        return self.endpoint

    def presigned_url(self, path: str, expires_in: int = 3600) -> str:
        """Generate a time-limited download URL for an object."""
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": self._object_key(path)},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._io_error("presign", path, e) from e

    def close(self) -> None:
        self.client.close()


@register_backend("s3")
def _s3_factory(context: Optional[FactoryContext], config: Dict[str, Any]) -> S3Storage:
    cfg = parse_backend_config(S3Config, config, "s3")
    values = cfg.model_dump(exclude={"endpoint"})
    if context is not None:
        values = {k: context.format(v) if isinstance(v, str) else v for k, v in values.items()}
    return S3Storage(endpoint=build_endpoint(cfg.endpoint, context), **values)
