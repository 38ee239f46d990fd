from __future__ import annotations

from functools import lru_cache

from s3_broker.services.config import S3Config
from s3_broker.services.setup import BucketStore


@lru_cache(maxsize=1)
def get_s3_config() -> S3Config:
    """Dependency provider for the environment-backed S3Config (read once)."""

    return S3Config.from_env()


def get_bucket_store() -> BucketStore:
    """FastAPI dependency provider for a BucketStore instance."""

    return BucketStore(get_s3_config())
