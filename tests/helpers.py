"""In-memory stand-ins for an aioboto3 S3 session used across the tests."""

from __future__ import annotations

from typing import Any, Optional

from botocore.exceptions import ClientError


def client_error(code: str, status_code: int, operation: str, message: str = "") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status_code},
        },
        operation,
    )


class FakeS3Client:
    """Records every call and answers from scripted responses.

    `responses[operation]` is a list consumed in order; an entry that is an
    exception is raised instead of returned. Operations without a script
    answer with an empty dict.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: dict[str, list[Any]] = {}
        self.client_kwargs: Optional[dict[str, Any]] = None

    def script(self, operation: str, *responses: Any) -> "FakeS3Client":
        self.responses.setdefault(operation, []).extend(responses)
        return self

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    @property
    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def __aenter__(self) -> "FakeS3Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    async def _call(self, operation: str, kwargs: dict[str, Any]) -> Any:
        self.calls.append((operation, kwargs))
        queue = self.responses.get(operation) or []
        if not queue:
            return {}
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def get_bucket_location(self, **kwargs: Any) -> Any:
        return await self._call("get_bucket_location", kwargs)

    async def create_bucket(self, **kwargs: Any) -> Any:
        return await self._call("create_bucket", kwargs)

    async def put_bucket_policy(self, **kwargs: Any) -> Any:
        return await self._call("put_bucket_policy", kwargs)

    async def list_objects(self, **kwargs: Any) -> Any:
        return await self._call("list_objects", kwargs)

    async def list_object_versions(self, **kwargs: Any) -> Any:
        return await self._call("list_object_versions", kwargs)

    async def delete_objects(self, **kwargs: Any) -> Any:
        return await self._call("delete_objects", kwargs)

    async def delete_bucket(self, **kwargs: Any) -> Any:
        return await self._call("delete_bucket", kwargs)


class FakeSession:
    def __init__(self, client: FakeS3Client) -> None:
        self._client = client

    def client(self, service_name: str, **kwargs: Any) -> FakeS3Client:
        assert service_name == "s3"
        self._client.client_kwargs = kwargs
        return self._client
