from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from s3_broker.services.setup import BucketDetails


class BucketResponse(BaseModel):
    bucket_name: str
    arn: str
    region: str
    tags: dict[str, str] = Field(default_factory=dict)

    @staticmethod
    def from_details(details: BucketDetails) -> "BucketResponse":
        return BucketResponse(
            bucket_name=details.bucket_name,
            arn=details.arn,
            region=details.region,
            tags=dict(details.tags),
        )


class BucketRequest(BaseModel):
    region: Optional[str] = Field(default=None, description="Location constraint; provider default when omitted")
    tags: dict[str, str] = Field(default_factory=dict)
    policy: Optional[str] = Field(
        default=None,
        description="Bucket policy template; falls back to the configured default policy when omitted",
    )


class CreateBucketResponse(BaseModel):
    bucket_name: str
    location: str


class ModifyBucketResponse(BaseModel):
    bucket_name: str
    modified: bool


class DeleteBucketResponse(BaseModel):
    bucket_name: str
    deleted: bool
