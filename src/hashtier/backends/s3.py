"""AWS S3 remote store.

This module provides the remote tier: content objects in an S3 bucket,
addressed by ``s3://bucket/key`` paths. Works with S3-compatible services
(MinIO, LocalStack) through ``endpoint_url``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from hashtier.backends.local import DEFAULT_CHUNK_SIZE, atomic_write_stream
from hashtier.base import (
    RemoteStore,
    StoreConnectionError,
    StoreNotFoundError,
    StoreReadError,
    validate_content_hash,
)

if TYPE_CHECKING:
    from hashtier.backends._protocols import S3ClientProtocol

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


@dataclass
class S3Config:
    """Configuration for the S3 remote store.

    Attributes:
        bucket: S3 bucket name.
        prefix: Key prefix for all content objects.
        region: AWS region name.
        endpoint_url: Custom endpoint URL (for S3-compatible services).
        access_key_id: Explicit access key, otherwise the boto3 chain is used.
        secret_access_key: Explicit secret key.
        storage_class: S3 storage class for uploaded objects.
    """

    bucket: str = ""
    prefix: str = "hashtier/"
    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    storage_class: str = "STANDARD"

    def get_key(self, content_hash: str) -> str:
        """Get the object key for a content hash."""
        prefix = self.prefix.strip("/")
        return f"{prefix}/{content_hash}" if prefix else content_hash


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))


class S3RemoteStore(RemoteStore):
    """S3-backed remote content store.

    Example:
        >>> store = S3RemoteStore(S3Config(bucket="content", region="us-east-1"))
        >>> path = store.path_for("da39a3ee5e6b4b0d3255bfef95601890afd80709")
        >>> store.is_readable(path)
        True
    """

    def __init__(
        self,
        config: S3Config | None = None,
        client: "S3ClientProtocol | None" = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        file_permissions: int | None = None,
    ) -> None:
        """Initialize the S3 store.

        Args:
            config: S3 configuration.
            client: Pre-built S3 client; created from config on first use
                when omitted.
            chunk_size: Bytes per read when downloading.
            file_permissions: Mode applied to downloaded files.
        """
        self._config = config or S3Config()
        self._client = client
        self._chunk_size = chunk_size
        self._file_permissions = file_permissions

    @property
    def config(self) -> S3Config:
        """Get the store configuration."""
        return self._config

    @property
    def client(self) -> "S3ClientProtocol":
        """Get the S3 client, creating it on first access."""
        if self._client is None:
            client_kwargs: dict[str, Any] = {}
            if self._config.region:
                client_kwargs["region_name"] = self._config.region
            if self._config.endpoint_url:
                client_kwargs["endpoint_url"] = self._config.endpoint_url
            if self._config.access_key_id:
                client_kwargs["aws_access_key_id"] = self._config.access_key_id
                client_kwargs["aws_secret_access_key"] = self._config.secret_access_key

            self._client = boto3.client("s3", **client_kwargs)
        return self._client

    def set_client(self, client: "S3ClientProtocol") -> None:
        """Replace the S3 client."""
        self._client = client

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def path_for(self, content_hash: str) -> str:
        validate_content_hash(content_hash)
        return f"{S3_SCHEME}{self._config.bucket}/{self._config.get_key(content_hash)}"

    def path_is_local(self, path: str) -> bool:
        return not path.startswith(S3_SCHEME)

    def _split_path(self, path: str) -> tuple[str, str]:
        """Split an ``s3://bucket/key`` path into bucket and key.

        Raises:
            ValueError: If the path is not a remote object path.
        """
        if self.path_is_local(path):
            raise ValueError(f"Not an S3 path: {path}")
        bucket, _, key = path[len(S3_SCHEME):].partition("/")
        if not bucket or not key:
            raise ValueError(f"Not an S3 object path: {path}")
        return bucket, key

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def is_readable(self, path: str) -> bool:
        try:
            bucket, key = self._split_path(path)
            self.client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            code = _error_code(e)
            if code not in _NOT_FOUND_CODES:
                logger.warning(f"S3 readability check failed for {path}: {code}")
            return False
        except (BotoCoreError, ValueError) as e:
            logger.warning(f"S3 readability check failed for {path}: {e}")
            return False

    def upload(self, local_path: str, remote_path: str) -> bool:
        try:
            bucket, key = self._split_path(remote_path)
            self.client.upload_file(
                local_path,
                bucket,
                key,
                ExtraArgs={"StorageClass": self._config.storage_class},
            )
        except (ClientError, BotoCoreError, OSError, ValueError) as e:
            logger.warning(f"Failed to upload {local_path} to {remote_path}: {e}")
            return False

        logger.info(f"Uploaded {local_path} to {remote_path}")
        return True

    def download(self, remote_path: str, local_path: str) -> bool:
        try:
            body = self.open(remote_path)
        except (StoreNotFoundError, StoreReadError, StoreConnectionError, ValueError) as e:
            logger.warning(f"Failed to download {remote_path}: {e}")
            return False

        try:
            written = atomic_write_stream(
                Path(local_path),
                body,
                chunk_size=self._chunk_size,
                file_permissions=self._file_permissions,
            )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.warning(f"Failed to download {remote_path} to {local_path}: {e}")
            return False
        finally:
            body.close()

        logger.info(f"Downloaded {remote_path} to {local_path} ({written} bytes)")
        return True

    def open(self, path: str) -> BinaryIO:
        bucket, key = self._split_path(path)
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise StoreNotFoundError("S3 object", path)
            raise StoreReadError(f"Failed to read from S3: {e}")
        except EndpointConnectionError as e:
            raise StoreConnectionError("S3", str(e))
        except BotoCoreError as e:
            raise StoreReadError(f"Failed to read from S3: {e}")
        return response["Body"]

    def close(self) -> None:
        """Drop the S3 client."""
        self._client = None
