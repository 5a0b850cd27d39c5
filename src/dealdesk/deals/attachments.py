"""On-disk storage for deal attachments.

Files land in UPLOAD_DIR as "{uuid}-{original name}" and are served under
UPLOAD_URL_PREFIX. The returned Attachment descriptor is what gets appended
to a deal's attachment list.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path

import structlog

from src.dealdesk.deals.errors import DealValidationError
from src.dealdesk.deals.schemas import Attachment

logger = structlog.get_logger(__name__)


class AttachmentStorage:
    """Writes and deletes uploaded files under a single directory.

    Args:
        upload_dir: Directory files are stored in (created on first save).
        url_prefix: Public URL prefix for stored files.
        max_bytes: Upload size limit.
    """

    def __init__(
        self, upload_dir: str | Path, url_prefix: str = "/uploads", max_bytes: int = 500 * 1024 * 1024
    ) -> None:
        self._root = Path(upload_dir)
        self._url_prefix = url_prefix.rstrip("/")
        self._max_bytes = max_bytes

    @property
    def root(self) -> Path:
        return self._root

    async def save(
        self, filename: str, content: bytes, content_type: str | None = None
    ) -> Attachment:
        """Store content and return its descriptor.

        Raises:
            DealValidationError: Empty filename or content over the size limit.
        """
        original = Path(filename or "").name
        if not original:
            raise DealValidationError("No file uploaded")
        if len(content) > self._max_bytes:
            raise DealValidationError(
                f"File exceeds the {self._max_bytes} byte upload limit"
            )

        stored_name = f"{uuid.uuid4()}-{original}"
        target = self._root / stored_name
        await asyncio.to_thread(self._write, target, content)

        logger.info("attachment.stored", filename=original, size=len(content))
        return Attachment(
            filename=original,
            url=f"{self._url_prefix}/{stored_name}",
            size=len(content),
            content_type=content_type,
        )

    async def delete(self, attachment: Attachment) -> bool:
        """Remove the stored file behind attachment.

        Returns False when the URL is outside this storage or the file is gone.
        """
        path = self._resolve(attachment.url)
        if path is None:
            logger.warning("attachment.outside_storage", url=attachment.url)
            return False
        removed = await asyncio.to_thread(self._unlink, path)
        if removed:
            logger.info("attachment.deleted", filename=attachment.filename)
        return removed

    def _resolve(self, url: str) -> Path | None:
        prefix = f"{self._url_prefix}/"
        if not url.startswith(prefix):
            return None
        root = self._root.resolve()
        path = (root / url[len(prefix):]).resolve()
        if path.parent != root:
            return None
        return path

    def _write(self, target: Path, content: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
