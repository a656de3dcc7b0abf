"""
StripBooth Backend — Media Storage Service
===========================================

What:  Key-addressed blob store for uploaded originals and exported strips.
How:   Keys map to files under STORAGE_ROOT. Writes go through aiofiles so
       the event loop is never blocked, and transient OSErrors (busy network
       share, EAGAIN) are retried with tenacity before surfacing as
       StorageError.
Who:   POST /api/uploads/project-image and GET|HEAD /uploads/{key}.
       The rest of the system only ever sees the key / public URL string.

Key layout:
    project-images/<projectId>/<kind>-<epoch ms>-<uuid>.<ext>

Key hygiene:
    Leading slashes are stripped and any run of dots collapses to a single
    dot, so a key can never climb out of STORAGE_ROOT. Resolved paths are
    checked against the root as well.
"""

import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from stripbooth.config import settings
from stripbooth.exceptions import NotFoundError, StorageError, ValidationError
from stripbooth.schemas.upload import UploadResponse

logger = logging.getLogger(__name__)

PROJECT_IMAGE_PREFIX = "project-images"


class StorageService:
    """Local-disk implementation of the media blob store."""

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("StorageService initialized with storage_root=%s", self.storage_root)

    # ── Key Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def safe_key(key: str) -> str:
        return re.sub(r"\.{2,}", ".", str(key or "").strip().lstrip("/"))

    @staticmethod
    def infer_extension(filename: Optional[str], content_type: Optional[str]) -> str:
        """Extension from the filename, else the MIME subtype, else 'bin'."""
        name = str(filename or "").strip()
        if "." in name:
            suffix = name.rsplit(".", 1)[-1].lower()
            if suffix:
                return suffix
        subtype = str(content_type or "").split(";")[0].strip().split("/")[-1].lower()
        return subtype or "bin"

    def build_project_image_key(
        self,
        project_id: str,
        kind: str,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> str:
        extension = self.infer_extension(filename, content_type)
        clean_kind = re.sub(r"[^A-Za-z0-9_-]", "", kind or "") or "image"
        file_name = f"{clean_kind}-{int(time.time() * 1000)}-{uuid.uuid4()}.{extension}"
        return self.safe_key(f"{PROJECT_IMAGE_PREFIX}/{project_id}/{file_name}")

    def public_url(self, key: str, request_base: Optional[str] = None) -> str:
        """
        Absolute URL under PUBLIC_BASE_URL when configured, otherwise this
        backend's /uploads/<key> route (absolute when the request origin is
        known, root-relative otherwise).
        """
        safe = self.safe_key(key)
        explicit = settings.public_base_url.strip().rstrip("/")
        if explicit:
            return f"{explicit}/{safe}"
        base = (request_base or "").strip().rstrip("/")
        return f"{base}/uploads/{safe}"

    def resolve_path(self, key: str) -> Path:
        safe = self.safe_key(key)
        if not safe:
            raise ValidationError(message="Object key is required", field="key")
        path = (self.storage_root / safe).resolve()
        if path != self.storage_root and self.storage_root not in path.parents:
            raise ValidationError(message="Invalid object key", field="key")
        return path

    # ── Blob Operations ───────────────────────────────────────────────────

    async def put(self, key: str, content: bytes) -> Path:
        path = self.resolve_path(key)
        try:
            await self._write(path, content)
        except OSError as e:
            logger.error("Failed to store object %s: %s", key, str(e))
            raise StorageError(
                message="Failed to save the uploaded image. Please try again.",
                context={"key": key, "os_error": str(e)},
            )
        logger.info("Object stored: %s (%d bytes)", key, len(content))
        return path

    async def get(self, key: str) -> bytes:
        path = self.locate(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error("Failed to read object %s: %s", key, str(e))
            raise StorageError(message="Failed to read the stored object.", context={"key": key})

    def locate(self, key: str) -> Path:
        """Path of an existing object; NotFoundError when absent."""
        path = self.resolve_path(key)
        if not path.is_file():
            raise NotFoundError(resource="file", resource_id=self.safe_key(key))
        return path

    async def delete(self, key: str) -> bool:
        path = self.resolve_path(key)
        if not path.exists():
            return False
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Failed to delete object %s: %s", key, str(e))
            raise StorageError(message="Failed to delete the stored object.", context={"key": key})
        logger.info("Object deleted: %s", key)
        return True

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(settings.storage_write_attempts),
        wait=wait_exponential_jitter(multiplier=0.1, max=2.0),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)

    # ── Upload Workflow ───────────────────────────────────────────────────

    async def store_project_image(
        self,
        project_id: str,
        kind: Optional[str],
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
        request_base: Optional[str] = None,
    ) -> UploadResponse:
        """
        Validates and stores one project image.

        Raises:
            ValidationError: missing projectId, empty file, or file over MAX_UPLOAD_SIZE
            StorageError: the write kept failing after retries
        """
        project_id = self.safe_key(project_id).replace("/", "")
        if not project_id:
            raise ValidationError(message="projectId is required", field="projectId")
        if not content:
            raise ValidationError(message="File is required", field="file")
        if len(content) > settings.max_upload_size:
            max_mb = settings.max_upload_size / (1024 * 1024)
            raise ValidationError(
                message=f"File exceeds max size of {max_mb:.0f}MB",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": len(content)},
            )

        key = self.build_project_image_key(project_id, kind or "image", filename, content_type)
        await self.put(key, content)

        return UploadResponse(
            storage_key=key,
            public_url=self.public_url(key, request_base),
            size=len(content),
            content_type=content_type or "application/octet-stream",
        )


# ── Singleton Instance ────────────────────────────────────────────────────
storage_service = StorageService()
