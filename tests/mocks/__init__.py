"""Mock implementations for external service testing.

These mocks match the Protocol definitions, allowing tests to run without
cloud credentials.
"""

from tests.mocks.cloud_mocks import (
    MockS3Client,
    MockS3ResponseBody,
    create_mock_s3_client,
    make_client_error,
)

__all__ = [
    "MockS3Client",
    "MockS3ResponseBody",
    "create_mock_s3_client",
    "make_client_error",
]
