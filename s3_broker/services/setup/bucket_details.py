from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

DEFAULT_REGION = "us-east-1"


def normalize_region(location_constraint: Optional[str]) -> str:
    # S3 reports no location constraint for buckets in us-east-1
    return location_constraint or DEFAULT_REGION


def bucket_arn(*, bucket_name: str, partition: str) -> str:
    return f"arn:{partition}:s3:::{bucket_name}"


@dataclass(frozen=True)
class BucketDetails:
    """Identity and metadata of a bucket.

    Produced fresh by every describe/create; the provider is the only source of
    truth. `arn` is derived from `bucket_name` and `partition` and never stored.
    `policy` is a template, only used at creation time.
    """

    bucket_name: str = ""
    partition: str = "aws"
    region: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    policy: str = ""

    @property
    def arn(self) -> str:
        return bucket_arn(bucket_name=self.bucket_name, partition=self.partition)

    def with_bucket_name(self, bucket_name: str) -> "BucketDetails":
        return replace(self, bucket_name=bucket_name)

    def template_context(self) -> dict[str, Any]:
        return {
            "bucket_name": self.bucket_name,
            "arn": self.arn,
            "partition": self.partition,
            "region": self.region,
            "tags": dict(self.tags),
        }
