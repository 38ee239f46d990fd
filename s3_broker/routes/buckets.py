from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query
from starlette import status

from s3_broker.models.bucket import (
    BucketResponse,
    BucketRequest,
    CreateBucketResponse,
    DeleteBucketResponse,
    ModifyBucketResponse,
)
from s3_broker.services.config import S3Config
from s3_broker.services.dependencies import get_bucket_store, get_s3_config
from s3_broker.services.setup import BucketDetails, BucketNotFoundError, BucketStore, DeletePhase

router = APIRouter(prefix="/buckets", tags=["buckets"])


@router.get("/{bucket_name}", response_model=BucketResponse)
async def describe_bucket(
    bucket_name: str = Path(..., description="S3 bucket name"),
    store: BucketStore = Depends(get_bucket_store),
) -> BucketResponse:
    details = await store.describe(bucket_name)
    return BucketResponse.from_details(details)


@router.put("/{bucket_name}", response_model=CreateBucketResponse, status_code=status.HTTP_201_CREATED)
async def create_bucket(
    bucket_name: str = Path(..., description="S3 bucket name"),
    payload: Optional[BucketRequest] = Body(default=None),
    store: BucketStore = Depends(get_bucket_store),
    config: S3Config = Depends(get_s3_config),
) -> CreateBucketResponse:
    payload = payload or BucketRequest()
    details = BucketDetails(
        bucket_name=bucket_name,
        partition=config.partition,
        region=payload.region or "",
        tags=payload.tags,
        policy=payload.policy if payload.policy is not None else config.policy_template,
    )
    location = await store.create(bucket_name, details)
    return CreateBucketResponse(bucket_name=bucket_name, location=location)


@router.patch("/{bucket_name}", response_model=ModifyBucketResponse)
async def modify_bucket(
    bucket_name: str = Path(..., description="S3 bucket name"),
    payload: Optional[BucketRequest] = Body(default=None),
    store: BucketStore = Depends(get_bucket_store),
) -> ModifyBucketResponse:
    payload = payload or BucketRequest()
    # Updating a bucket is not supported yet; the store accepts and ignores it
    details = BucketDetails(bucket_name=bucket_name, region=payload.region or "", tags=payload.tags)
    await store.modify(bucket_name, details)
    return ModifyBucketResponse(bucket_name=bucket_name, modified=False)


@router.delete("/{bucket_name}", response_model=DeleteBucketResponse)
async def delete_bucket(
    bucket_name: str = Path(..., description="S3 bucket name"),
    missing_ok: bool = Query(default=False, description="Report an already deleted bucket as success"),
    from_phase: Optional[DeletePhase] = Query(default=None, description="Resume a failed delete from this phase"),
    store: BucketStore = Depends(get_bucket_store),
) -> DeleteBucketResponse:
    try:
        await store.delete(bucket_name, start_phase=from_phase or DeletePhase.PURGING_OBJECTS)
    except BucketNotFoundError:
        if not missing_ok:
            raise
        return DeleteBucketResponse(bucket_name=bucket_name, deleted=False)
    return DeleteBucketResponse(bucket_name=bucket_name, deleted=True)
