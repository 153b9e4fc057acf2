"""Protocol definitions for external library clients.

These protocols define only the boto3 client methods actually used by the
remote store, giving type coverage without requiring stub packages.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class S3ClientProtocol(Protocol):
    """Protocol for boto3 S3 client.

    Defines the minimal interface used by S3RemoteStore.
    """

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Check if an object exists."""
        ...

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Retrieve an object from S3."""
        ...

    def upload_file(
        self,
        Filename: str,
        Bucket: str,
        Key: str,
        ExtraArgs: dict[str, Any] | None = None,
    ) -> None:
        """Upload a local file to S3 with a managed transfer."""
        ...
