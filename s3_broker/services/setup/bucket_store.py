from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Optional

import aioboto3
import jinja2
from botocore.exceptions import BotoCoreError, ClientError

from s3_broker.services.config import S3Config
from s3_broker.services.setup.bucket_details import DEFAULT_REGION, BucketDetails, normalize_region


logger = logging.getLogger(__name__)


class DeletePhase(str, enum.Enum):
    PURGING_OBJECTS = "purging-objects"
    PURGING_VERSIONS = "purging-versions"
    DELETING_BUCKET = "deleting-bucket"


class BucketStoreError(RuntimeError):
    def __init__(self, message: str, *, phase: Optional[DeletePhase] = None) -> None:
        super().__init__(message)
        self.phase = phase


class BucketNotFoundError(BucketStoreError):
    def __init__(self, bucket_name: str, *, phase: Optional[DeletePhase] = None) -> None:
        super().__init__(f"s3 bucket does not exist: {bucket_name}", phase=phase)
        self.bucket_name = bucket_name


class BucketProviderError(BucketStoreError):
    """A failure reported by the storage provider, with its code and message kept verbatim."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        phase: Optional[DeletePhase] = None,
    ) -> None:
        super().__init__(f"{code}: {message}", phase=phase)
        self.code = code
        self.message = message
        self.status_code = status_code


class PolicyTemplateError(BucketStoreError):
    pass


class BucketDeleteCancelledError(BucketStoreError):
    pass


_NOT_FOUND_CODES = {"NoSuchBucket", "NotFound", "404"}


def _error_details(exc: Exception) -> tuple[str, str, Optional[int]]:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error") or {}
        status_code = (exc.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
        return (str(error.get("Code") or "Unknown"), str(error.get("Message") or exc), status_code)
    return (type(exc).__name__, str(exc), None)


def _is_not_found(exc: Exception, *, status_codes: frozenset[int] = frozenset({404})) -> bool:
    code, _, status_code = _error_details(exc)
    return code in _NOT_FOUND_CODES or status_code in status_codes


class BucketStore:
    """Provisions, inspects and tears down S3 buckets.

    Holds no per-bucket state: every call opens its own client and the provider
    is the source of truth, so one instance can be shared across concurrent
    callers. Nothing is retried and nothing is rolled back; multi-step
    operations (create + policy, purge + delete) can fail half way and report
    the error to the caller.
    """

    PAGE_SIZE: int = 1000

    def __init__(self, config: S3Config, *, session: Optional[Any] = None) -> None:
        self._config = config
        self._session = session if session is not None else aioboto3.Session()

    def _client(self) -> Any:
        return self._session.client(
            "s3",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    @staticmethod
    def _provider_error(
        event: str,
        exc: Exception,
        *,
        bucket_name: str,
        phase: Optional[DeletePhase] = None,
    ) -> BucketProviderError:
        code, message, status_code = _error_details(exc)
        logger.error(
            "aws-s3-error event=%s bucket=%s code=%s message=%s",
            event,
            bucket_name,
            code,
            message,
            extra={"event": event, "bucket": bucket_name, "code": code, "status_code": status_code},
        )
        return BucketProviderError(code, message, status_code=status_code, phase=phase)

    # -----------------
    # Public operations
    # -----------------

    async def describe(self, bucket_name: str, partition: Optional[str] = None) -> BucketDetails:
        partition = partition or self._config.partition
        logger.debug("get-bucket-location", extra={"event": "get-bucket-location", "bucket": bucket_name})

        try:
            s3_client: Any = self._client()
            async with s3_client as s3:
                response = await s3.get_bucket_location(Bucket=bucket_name)
        except (ClientError, BotoCoreError) as exc:
            if _is_not_found(exc):
                logger.info("get-bucket-location bucket=%s not found", bucket_name)
                raise BucketNotFoundError(bucket_name) from exc
            raise self._provider_error("get-bucket-location", exc, bucket_name=bucket_name) from exc

        region = normalize_region(response.get("LocationConstraint"))
        logger.debug(
            "get-bucket-location",
            extra={"event": "get-bucket-location", "bucket": bucket_name, "region": region},
        )
        return BucketDetails(bucket_name=bucket_name, partition=partition, region=region)

    async def create(self, bucket_name: str, details: BucketDetails) -> str:
        """Create the bucket, then apply its policy when `details.policy` is set.

        The two steps are not atomic: if the policy can not be rendered or
        applied the bucket stays created without a policy.

        Returns:
            The location reported by the provider for the new bucket.
        """

        kwargs: dict[str, Any] = {"Bucket": bucket_name}
        if details.region and details.region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": details.region}

        s3_client: Any = self._client()
        async with s3_client as s3:
            logger.debug("create-bucket", extra={"event": "create-bucket", "bucket": bucket_name})
            try:
                response = await s3.create_bucket(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise self._provider_error("create-bucket", exc, bucket_name=bucket_name) from exc
            location = response.get("Location") or ""
            logger.debug(
                "create-bucket",
                extra={"event": "create-bucket", "bucket": bucket_name, "location": location},
            )

            if details.policy:
                policy = self._render_policy(details.with_bucket_name(bucket_name))
                logger.debug("put-bucket-policy", extra={"event": "put-bucket-policy", "bucket": bucket_name})
                try:
                    await s3.put_bucket_policy(Bucket=bucket_name, Policy=policy)
                except (ClientError, BotoCoreError) as exc:
                    raise self._provider_error("put-bucket-policy", exc, bucket_name=bucket_name) from exc

        return location

    async def modify(self, bucket_name: str, details: BucketDetails) -> None:
        """Not supported yet: returns without touching the bucket."""

        logger.debug("modify-bucket not supported, ignoring", extra={"event": "modify-bucket", "bucket": bucket_name})

    async def delete(
        self,
        bucket_name: str,
        *,
        start_phase: DeletePhase = DeletePhase.PURGING_OBJECTS,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """Empty the bucket (objects, then versions and delete markers) and delete it.

        Phases run in order starting at `start_phase`, so a caller can resume
        from the `phase` of a previous failure. Any error aborts immediately and
        leaves the bucket as it is. `cancel` is checked between pages.

        Raises:
            BucketNotFoundError: The bucket is already gone.
            BucketProviderError: Any other provider failure.
            BucketDeleteCancelledError: `cancel` was set before the delete finished.
        """

        phases = list(DeletePhase)
        s3_client: Any = self._client()
        async with s3_client as s3:
            for phase in phases[phases.index(start_phase):]:
                if phase is DeletePhase.PURGING_OBJECTS:
                    await self._purge_objects(s3, bucket_name, cancel=cancel)
                elif phase is DeletePhase.PURGING_VERSIONS:
                    await self._purge_versions(s3, bucket_name, cancel=cancel)
                else:
                    self._check_cancelled(bucket_name, phase, cancel)
                    await self._delete_bucket(s3, bucket_name)

    # -----------------
    # Private helpers
    # -----------------

    def _render_policy(self, details: BucketDetails) -> str:
        env = jinja2.Environment(autoescape=False, undefined=jinja2.StrictUndefined)
        try:
            template = env.from_string(details.policy)
            return template.render(**details.template_context())
        except jinja2.TemplateError as exc:
            logger.error("aws-s3-error event=render-policy bucket=%s error=%s", details.bucket_name, exc)
            raise PolicyTemplateError(f"Failed rendering bucket policy template: {exc}") from exc

    @staticmethod
    def _check_cancelled(bucket_name: str, phase: DeletePhase, cancel: Optional[asyncio.Event]) -> None:
        if cancel is not None and cancel.is_set():
            logger.info("delete-bucket bucket=%s cancelled during %s", bucket_name, phase.value)
            raise BucketDeleteCancelledError(f"Delete of {bucket_name} cancelled", phase=phase)

    async def _delete_keys(
        self,
        s3: Any,
        bucket_name: str,
        objects: list[dict[str, str]],
        *,
        event: str,
        phase: DeletePhase,
    ) -> None:
        logger.debug(event, extra={"event": event, "bucket": bucket_name, "count": len(objects)})
        try:
            response = await s3.delete_objects(Bucket=bucket_name, Delete={"Objects": objects, "Quiet": True})
        except (ClientError, BotoCoreError) as exc:
            if _is_not_found(exc):
                raise BucketNotFoundError(bucket_name, phase=phase) from exc
            raise self._provider_error(event, exc, bucket_name=bucket_name, phase=phase) from exc

        # DeleteObjects answers 200 even when single keys fail
        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            code = str(first.get("Code") or "Unknown")
            message = f"{first.get('Message') or ''} (key={first.get('Key')}, {len(errors)} failed)".strip()
            logger.error(
                "aws-s3-error event=%s bucket=%s code=%s failed=%d",
                event,
                bucket_name,
                code,
                len(errors),
            )
            raise BucketProviderError(code, message, phase=phase)

    async def _purge_objects(self, s3: Any, bucket_name: str, *, cancel: Optional[asyncio.Event]) -> None:
        phase = DeletePhase.PURGING_OBJECTS
        marker: Optional[str] = None

        while True:
            self._check_cancelled(bucket_name, phase, cancel)

            kwargs: dict[str, Any] = {"Bucket": bucket_name, "MaxKeys": self.PAGE_SIZE}
            if marker:
                kwargs["Marker"] = marker
            logger.debug("list-objects", extra={"event": "list-objects", "bucket": bucket_name, "marker": marker})

            try:
                response = await s3.list_objects(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                if _is_not_found(exc):
                    raise BucketNotFoundError(bucket_name, phase=phase) from exc
                raise self._provider_error("list-objects", exc, bucket_name=bucket_name, phase=phase) from exc

            objects = [{"Key": o["Key"]} for o in response.get("Contents") or []]
            if objects:
                await self._delete_keys(s3, bucket_name, objects, event="delete-objects", phase=phase)

            # Without a delimiter S3 leaves NextMarker out; the last key is the marker then
            marker = response.get("NextMarker")
            if not marker and response.get("IsTruncated") and objects:
                marker = objects[-1]["Key"]
            if not marker:
                break

    async def _purge_versions(self, s3: Any, bucket_name: str, *, cancel: Optional[asyncio.Event]) -> None:
        phase = DeletePhase.PURGING_VERSIONS
        key_marker: Optional[str] = None
        version_id_marker: Optional[str] = None

        while True:
            self._check_cancelled(bucket_name, phase, cancel)

            kwargs: dict[str, Any] = {"Bucket": bucket_name}
            if key_marker:
                kwargs["KeyMarker"] = key_marker
            if version_id_marker:
                kwargs["VersionIdMarker"] = version_id_marker
            logger.debug(
                "list-versions",
                extra={
                    "event": "list-versions",
                    "bucket": bucket_name,
                    "key_marker": key_marker,
                    "version_id_marker": version_id_marker,
                },
            )

            try:
                response = await s3.list_object_versions(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                if _is_not_found(exc):
                    raise BucketNotFoundError(bucket_name, phase=phase) from exc
                raise self._provider_error("list-versions", exc, bucket_name=bucket_name, phase=phase) from exc

            entries = list(response.get("Versions") or []) + list(response.get("DeleteMarkers") or [])
            objects = [{"Key": e["Key"], "VersionId": e["VersionId"]} for e in entries]
            if objects:
                await self._delete_keys(s3, bucket_name, objects, event="delete-versions", phase=phase)

            key_marker = response.get("NextKeyMarker")
            version_id_marker = response.get("NextVersionIdMarker")
            if not key_marker and not version_id_marker:
                break

    async def _delete_bucket(self, s3: Any, bucket_name: str) -> None:
        phase = DeletePhase.DELETING_BUCKET
        logger.debug("delete-bucket", extra={"event": "delete-bucket", "bucket": bucket_name})
        try:
            await s3.delete_bucket(Bucket=bucket_name)
        except (ClientError, BotoCoreError) as exc:
            # S3 answers 400 as well as 404 for a bucket that is gone
            if _is_not_found(exc, status_codes=frozenset({400, 404})):
                logger.info("delete-bucket bucket=%s already gone", bucket_name)
                raise BucketNotFoundError(bucket_name, phase=phase) from exc
            raise self._provider_error("delete-bucket", exc, bucket_name=bucket_name, phase=phase) from exc
        logger.debug("delete-bucket done", extra={"event": "delete-bucket", "bucket": bucket_name})
