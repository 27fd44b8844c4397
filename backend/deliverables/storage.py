from __future__ import annotations

import hashlib
import logging
from pathlib import Path
import time
from typing import Any
from uuid import uuid4

from deliverables.config import Settings

logger = logging.getLogger("deliverables.storage")

LOCAL_SIGNED_PREFIX = "local-signed://"


class StorageError(RuntimeError):
    """Raised when artifact storage read/write fails."""


def _normalize_backend(value: str) -> str:
    normalized = (value or "").strip().lower()
    if normalized in {"local", "filesystem", "fs"}:
        return "local"
    if normalized in {"s3"}:
        return "s3"
    raise StorageError(f"Unsupported STORAGE_BACKEND '{value}'. Use 'local' or 's3'.")


def object_key_for(content: bytes, extension: str) -> str:
    digest = hashlib.sha256(content).hexdigest()
    return f"{digest[:2]}/{digest}.{extension.lstrip('.')}"


class ArtifactStorage:
    """Content-addressed artifact store with short-lived signed download links."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._backend = _normalize_backend(settings.storage_backend)
        self._root = Path(settings.storage_root)
        self._client = client
        self._signed: dict[str, tuple[str, float]] = {}

    @property
    def backend(self) -> str:
        return self._backend

    def put_object(self, content: bytes, extension: str) -> str:
        key = object_key_for(content, extension)
        if self._backend == "local":
            destination = self._root / key
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_bytes(content)
            except OSError as exc:
                raise StorageError(f"Failed to write artifact to '{destination}': {exc}") from exc
            logger.info("artifact_stored", extra={"event": "artifact_stored", "storage_key": key, "bytes": len(content)})
            return key

        bucket, s3_key = self._s3_location(key)
        try:
            self._s3_client().put_object(Bucket=bucket, Key=s3_key, Body=content)
        except Exception as exc:  # pragma: no cover - depends on AWS runtime integration
            raise StorageError(f"Failed to write artifact to S3 (bucket={bucket}, key={s3_key}): {exc}") from exc
        logger.info("artifact_stored", extra={"event": "artifact_stored", "storage_key": key, "bytes": len(content)})
        return key

    def get_object(self, key: str) -> bytes:
        raw = (key or "").strip()
        if not raw:
            raise StorageError("Missing storage key.")

        if self._backend == "local":
            path = self._root / raw
            if not path.is_file():
                raise StorageError(f"Stored artifact not found at '{path}'.")
            return path.read_bytes()

        bucket, s3_key = self._s3_location(raw)
        try:
            response = self._s3_client().get_object(Bucket=bucket, Key=s3_key)
        except Exception as exc:  # pragma: no cover - depends on AWS runtime integration
            raise StorageError(f"Failed to read artifact from S3 (bucket={bucket}, key={s3_key}): {exc}") from exc
        body = response.get("Body")
        if body is None:
            raise StorageError(f"S3 get_object returned no body (bucket={bucket}, key={s3_key}).")
        return body.read()

    def create_signed_url(self, key: str) -> str:
        ttl = self._settings.signed_url_ttl_seconds
        if self._backend == "local":
            token = str(uuid4())
            self._signed[token] = (key, time.time() + ttl)
            return f"{LOCAL_SIGNED_PREFIX}{token}"

        bucket, s3_key = self._s3_location(key)
        try:
            return self._s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": s3_key},
                ExpiresIn=ttl,
            )
        except Exception as exc:  # pragma: no cover - depends on AWS runtime integration
            raise StorageError(f"Failed to presign artifact URL (bucket={bucket}, key={s3_key}): {exc}") from exc

    def resolve_signed_url(self, url: str) -> bytes | None:
        if not url.startswith(LOCAL_SIGNED_PREFIX):
            return None
        token = url[len(LOCAL_SIGNED_PREFIX) :]
        entry = self._signed.get(token)
        if entry is None:
            return None
        key, expires_at = entry
        if time.time() > expires_at:
            self._signed.pop(token, None)
            return None
        return self.get_object(key)

    def _s3_location(self, key: str) -> tuple[str, str]:
        bucket = str(self._settings.s3_bucket or "").strip()
        if not bucket:
            raise StorageError("S3 storage backend selected but S3_BUCKET is not configured.")
        prefix = str(self._settings.s3_prefix or "").strip().strip("/")
        return bucket, f"{prefix}/artifacts/{key}" if prefix else f"artifacts/{key}"

    def _s3_client(self) -> Any:
        if self._client is None:
            try:
                import boto3  # type: ignore
            except ImportError as exc:
                raise StorageError("boto3 is required for S3 storage backend.") from exc
            self._client = boto3.client("s3", region_name=self._settings.aws_region)
        return self._client
