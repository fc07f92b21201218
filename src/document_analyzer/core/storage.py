from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from document_analyzer.core.config import settings
from document_analyzer.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class ObjectStorage:
    backend = "abstract"

    def put(self, *, key: str, body: bytes) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    backend = "local"

    def __init__(self, root: Path):
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError as e:
            log_exception(logger, "storage.put.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Could not write object: {key}") from e
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"Object not found: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            log_exception(logger, "storage.get.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Could not read object: {key}") from e

    def delete(self, *, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


class S3ObjectStorage(ObjectStorage):
    backend = "s3"

    def __init__(self) -> None:
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"
        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        config = Config(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=30,
        )
        self._client = session.client(
            "s3", endpoint_url=settings.s3_endpoint_url or None, config=config
        )
        self._bucket = settings.s3_bucket

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as e:
            log_exception(logger, "storage.put.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Could not write object: {key}") from e
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            log_exception(logger, "storage.get.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Object not found: {key}") from e

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            log_exception(logger, "storage.delete.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Could not delete object: {key}") from e

    def head_bucket(self) -> None:
        self._client.head_bucket(Bucket=self._bucket)


_storage: ObjectStorage | None = None


def _local_root() -> Path:
    root = settings.local_storage_path
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    return root


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is None:
        if settings.storage_backend == "s3":
            _storage = S3ObjectStorage()
        else:
            _storage = LocalObjectStorage(_local_root())
    return _storage


def upload_key(filename: str) -> str:
    safe_name = Path(filename or "upload.bin").name.replace(" ", "_")
    return f"uploads/{uuid.uuid4()}-{safe_name}"


def diagnose_storage(*, write_test: bool = False) -> dict[str, Any]:
    """
    Connectivity check for the configured backend.

    Never returns credentials. With write_test=True a small object is written,
    read back and deleted.
    """
    result: dict[str, Any] = {"ok": True, "backend": settings.storage_backend}
    start = time.monotonic()
    try:
        storage = get_storage()
        if isinstance(storage, S3ObjectStorage):
            result["bucket"] = settings.s3_bucket
            storage.head_bucket()
        else:
            result["root"] = str(_local_root())
        if write_test:
            key = f"diagnostics/healthz-{uuid.uuid4()}.txt"
            storage.put(key=key, body=b"ok")
            echoed = storage.get(key=key)
            storage.delete(key=key)
            result["write_test"] = {"ok": echoed == b"ok", "key": key}
            result["ok"] = echoed == b"ok"
    except Exception as e:  # noqa: BLE001
        result["ok"] = False
        result["error_type"] = type(e).__name__
        result["error"] = str(e)
    result["duration_ms"] = monotonic_ms(start)
    return result
