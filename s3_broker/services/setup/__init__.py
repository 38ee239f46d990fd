"""Setup (provisioning) services.

This package contains the helpers that *provision*, *inspect* and *tear down*
the S3 buckets handed out by the broker.
"""

from s3_broker.services.setup.bucket_details import DEFAULT_REGION, BucketDetails, bucket_arn, normalize_region
from s3_broker.services.setup.bucket_store import (
    BucketDeleteCancelledError,
    BucketNotFoundError,
    BucketProviderError,
    BucketStore,
    BucketStoreError,
    DeletePhase,
    PolicyTemplateError,
)

__all__ = [
    "DEFAULT_REGION",
    "BucketDetails",
    "BucketDeleteCancelledError",
    "BucketNotFoundError",
    "BucketProviderError",
    "BucketStore",
    "BucketStoreError",
    "DeletePhase",
    "PolicyTemplateError",
    "bucket_arn",
    "normalize_region",
]
