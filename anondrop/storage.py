import logging
from typing import Protocol, runtime_checkable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from anondrop.errors import DependencyUnavailable

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


@runtime_checkable
class ObjectStore(Protocol):
    """
    Signed-URL issuance and deletion for blobs addressed by key.

    File bytes never pass through the store; clients PUT and GET directly
    against the signed URLs.
    """

    def sign_put(self, key: str, content_type: str, size_bytes: int, ttl: int) -> str: ...

    def sign_get(self, key: str, ttl: int) -> str: ...

    def delete_object(self, key: str) -> bool: ...


class S3ObjectStore:
    """
    S3-compatible object store (Cloudflare R2 in production).

    Credentials fall back to boto3's own resolution chain when the access key
    pair is left empty.
    """

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        region: str = "auto",
        connect_timeout: float = 10.0,
        read_timeout: float = 10.0,
        max_attempts: int = 3,
    ):
        self.bucket = (bucket or "").strip()
        self.configured = bool(self.bucket)
        if not self.configured:
            logger.warning("Object store bucket is not set; signing and deletes are disabled")

        cfg = Config(
            signature_version="s3v4",
            region_name=region or None,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        )
        self.s3 = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=cfg,
        )

    def _require_configured(self) -> None:
        if not self.configured:
            raise DependencyUnavailable("object store bucket is not configured")

    def _presign(self, method: str, params: dict, ttl: int) -> str:
        try:
            return self.s3.generate_presigned_url(
                ClientMethod=method,
                Params={"Bucket": self.bucket, **params},
                ExpiresIn=max(1, int(ttl)),
            )
        except (BotoCoreError, ClientError) as exc:
            raise DependencyUnavailable(f"signing {method} for {params.get('Key')} failed: {exc}") from exc

    def sign_put(self, key: str, content_type: str, size_bytes: int, ttl: int) -> str:
        self._require_configured()
        return self._presign(
            "put_object",
            {"Key": key, "ContentType": content_type, "ContentLength": size_bytes},
            ttl,
        )

    def sign_get(self, key: str, ttl: int) -> str:
        self._require_configured()
        return self._presign("get_object", {"Key": key}, ttl)

    def delete_object(self, key: str) -> bool:
        if not self.configured:
            logger.warning("Delete of %s skipped: object store is not configured", key)
            return False
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                return True
            logger.error("Delete of %s failed: %s", key, exc)
            return False
        except BotoCoreError as exc:
            logger.error("Delete of %s failed: %s", key, exc)
            return False
        return True
