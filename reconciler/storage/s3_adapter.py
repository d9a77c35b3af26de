import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from reconciler.config.settings import Settings
from reconciler.storage.base import BaseObjectStore
from reconciler.storage.exceptions import StorageError, StorageTransientError

_TRANSIENT_NETWORK_ERRORS = (
    ConnectTimeoutError,
    ReadTimeoutError,
    EndpointConnectionError,
    ConnectionClosedError,
)
_TRANSIENT_ERROR_CODES = {
    "RequestTimeout",
    "RequestTimeoutException",
    "SlowDown",
    "InternalError",
    "ServiceUnavailable",
    "Throttling",
}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _translate(exc: Exception, operation: str, key: str) -> StorageError:
    message = f"S3 {operation} failed for '{key}': {exc}"
    if isinstance(exc, _TRANSIENT_NETWORK_ERRORS):
        return StorageTransientError(message)
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in _TRANSIENT_ERROR_CODES or status >= 500:
            return StorageTransientError(message)
    return StorageError(message)


class S3ObjectStore(BaseObjectStore):
    """Object storage on S3 or any S3-compatible endpoint."""

    def __init__(self, settings: Settings, client=None) -> None:  # type: ignore[no-untyped-def]
        self._bucket = settings.storage_bucket
        self._client = client or boto3.client(
            "s3",
            region_name=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
            config=Config(signature_version="s3v4"),
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def put(self, key: str, content: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "put", key) from exc
        return key

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code", "") in _NOT_FOUND_CODES:
                return False
            raise _translate(exc, "head", key) from exc
        except BotoCoreError as exc:
            raise _translate(exc, "head", key) from exc
        return True

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "delete", key) from exc

    def signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "presign", key) from exc
