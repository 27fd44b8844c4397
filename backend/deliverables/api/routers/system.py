from __future__ import annotations

import time
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from deliverables.config import settings
from deliverables.version import APP_VERSION


router = APIRouter()

_READY_CACHE_TTL_SECONDS = 30.0
_ready_cache: dict[str, object] = {
    "ts": 0.0,
    "ok": None,
    "payload": None,
}


def _normalize_storage_backend(value: str) -> str:
    normalized = (value or "").strip().lower()
    if normalized in {"", "local", "filesystem", "fs"}:
        return "local"
    if normalized in {"s3"}:
        return "s3"
    return "unknown"


def _cache_set(ok: bool, payload: dict[str, object]) -> None:
    _ready_cache["ts"] = time.time()
    _ready_cache["ok"] = ok
    _ready_cache["payload"] = payload


def _cache_get() -> dict[str, object] | None:
    if time.time() - float(_ready_cache.get("ts") or 0.0) > _READY_CACHE_TTL_SECONDS:
        return None
    payload = _ready_cache.get("payload")
    return payload if isinstance(payload, dict) else None


def reset_ready_cache() -> None:
    _ready_cache.update({"ts": 0.0, "ok": None, "payload": None})


def _probe_local_storage() -> dict[str, object]:
    root = Path(settings.storage_root)
    root.mkdir(parents=True, exist_ok=True)
    token = f"{time.time()}-{uuid4()}"
    probe = root / ".ready_probe"
    probe.write_text(token, encoding="utf-8")
    read_back = probe.read_text(encoding="utf-8")
    probe.unlink(missing_ok=True)
    if read_back != token:
        raise RuntimeError("local storage probe mismatch")
    return {"ok": True, "backend": "local"}


def _probe_s3_storage() -> dict[str, object]:
    import boto3  # type: ignore

    bucket = str(settings.s3_bucket or "").strip()
    prefix = str(settings.s3_prefix or "").strip().strip("/")
    key = f"{prefix + '/' if prefix else ''}readyz/{settings.app_env}/deliverables.txt"
    token = f"{time.time()}-{uuid4()}"
    client = boto3.client("s3", region_name=settings.aws_region)
    client.put_object(Bucket=bucket, Key=key, Body=token.encode("utf-8"), ContentType="text/plain")
    body = client.get_object(Bucket=bucket, Key=key).get("Body")
    if body is None:
        raise RuntimeError("S3 get_object returned no Body")
    if body.read().decode("utf-8", errors="replace") != token:
        raise RuntimeError("S3 readiness probe mismatch")
    return {"ok": True, "backend": "s3", "bucket": bucket, "key": key}


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "deliverables-api", "status": "running", "version": APP_VERSION}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}


@router.get("/ready", response_model=None)
def ready() -> JSONResponse:
    cached = _cache_get()
    if cached is not None:
        return JSONResponse(status_code=200 if _ready_cache.get("ok") else 503, content=cached)

    payload: dict[str, object] = {
        "status": "ready",
        "environment": settings.app_env,
        "checks": {},
    }
    backend = _normalize_storage_backend(settings.storage_backend)
    try:
        if backend == "local":
            payload["checks"]["storage"] = _probe_local_storage()
        elif backend == "s3":
            payload["checks"]["storage"] = _probe_s3_storage()
        else:
            raise RuntimeError("unsupported storage backend")
    except Exception as exc:
        payload["status"] = "not_ready"
        payload["checks"]["storage"] = {"ok": False, "backend": backend, "error": str(exc)}
        _cache_set(False, payload)
        return JSONResponse(status_code=503, content=payload)

    _cache_set(True, payload)
    return JSONResponse(status_code=200, content=payload)
