"""Test configuration for pytest."""

from __future__ import annotations

import pytest

from s3_broker.services.config import S3Config
from s3_broker.services.setup import BucketStore
from tests.helpers import FakeS3Client, FakeSession


@pytest.fixture
def s3_config() -> S3Config:
    return S3Config(region_name="eu-west-1", partition="aws")


@pytest.fixture
def s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def store(s3_config: S3Config, s3: FakeS3Client) -> BucketStore:
    return BucketStore(s3_config, session=FakeSession(s3))
