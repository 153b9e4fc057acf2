"""Shared pytest fixtures for hashtier tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable

import pytest

from hashtier.backends.local import LocalFileStore
from hashtier.backends.s3 import S3Config, S3RemoteStore
from hashtier.config import TieredFileSystemConfig
from hashtier.filesystem import TieredFileSystem
from hashtier.ledger import InMemoryLocationLedger
from hashtier.recovery import ContentRecovery
from tests.mocks import MockS3Client, create_mock_s3_client

TEST_BUCKET = "test-bucket"


@pytest.fixture
def content() -> bytes:
    """Sample file content."""
    return b"The quick brown fox jumps over the lazy dog\n" * 100


@pytest.fixture
def content_hash(content: bytes) -> str:
    """SHA-1 content hash of the sample content."""
    return hashlib.sha1(content).hexdigest()


@pytest.fixture
def filedir(tmp_path: Path) -> Path:
    """Empty local store directory."""
    path = tmp_path / "filedir"
    path.mkdir()
    return path


@pytest.fixture
def trashdir(tmp_path: Path) -> Path:
    """Empty trash directory."""
    path = tmp_path / "trashdir"
    path.mkdir()
    return path


@pytest.fixture
def local_store(filedir: Path) -> LocalFileStore:
    """Local store rooted at the temporary file directory."""
    return LocalFileStore(filedir, dir_permissions=0o755, file_permissions=0o644)


@pytest.fixture
def s3_client() -> MockS3Client:
    """In-memory S3 client with the test bucket."""
    return create_mock_s3_client(with_bucket=TEST_BUCKET)


@pytest.fixture
def remote_store(s3_client: MockS3Client) -> S3RemoteStore:
    """S3 remote store backed by the in-memory client."""
    return S3RemoteStore(S3Config(bucket=TEST_BUCKET), client=s3_client)


@pytest.fixture
def ledger() -> InMemoryLocationLedger:
    """Empty in-memory ledger."""
    return InMemoryLocationLedger()


@pytest.fixture
def make_filesystem(
    local_store: LocalFileStore,
    remote_store: S3RemoteStore,
    ledger: InMemoryLocationLedger,
) -> Callable[..., TieredFileSystem]:
    """Factory building a tiered file system over the shared fixtures."""

    def _make(
        prefer_remote: bool = False,
        recovery: ContentRecovery | None = None,
        **config_values: object,
    ) -> TieredFileSystem:
        config = TieredFileSystemConfig(prefer_remote=prefer_remote, **config_values)
        return TieredFileSystem(
            local_store,
            remote_store,
            ledger,
            config=config,
            recovery=recovery,
        )

    return _make


@pytest.fixture
def put_remote(s3_client: MockS3Client) -> Callable[[str, bytes], None]:
    """Store content in the test bucket under the default prefix."""

    def _put(content_hash: str, data: bytes) -> None:
        s3_client.put(TEST_BUCKET, S3Config().get_key(content_hash), data)

    return _put


@pytest.fixture
def put_local(local_store: LocalFileStore) -> Callable[[str, bytes], str]:
    """Store content in the local store and return its path."""

    def _put(content_hash: str, data: bytes) -> str:
        path = Path(local_store.path_for(content_hash))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return str(path)

    return _put
