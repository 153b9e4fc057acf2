"""Storage backends for the local and remote tiers."""

from hashtier.backends.local import LocalFileStore, atomic_write_stream
from hashtier.backends.s3 import S3Config, S3RemoteStore

__all__ = [
    "LocalFileStore",
    "atomic_write_stream",
    "S3Config",
    "S3RemoteStore",
]
