from __future__ import annotations

import base64
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "/uploads/"


class PhotoCaptureService:
    """Turns captured image bytes into references usable in a workflow's photo lists."""

    def __init__(self, upload_dir: Path) -> None:
        self.upload_dir = upload_dir
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def capture(self, filename: str, content_type: str, data: bytes) -> Optional[str]:
        if not data:
            logger.warning("Discarding empty photo upload %r", filename)
            return None
        if not content_type.startswith("image/"):
            logger.warning("Discarding non-image upload %r (%s)", filename, content_type)
            return None
        extension = Path(filename).suffix.lower() or mimetypes.guess_extension(content_type) or ".bin"
        stored_name = f"{uuid.uuid4().hex}{extension}"
        try:
            (self.upload_dir / stored_name).write_bytes(data)
        except OSError:
            logger.warning("Could not store photo %r", filename, exc_info=True)
            return None
        return f"{UPLOAD_PREFIX}{stored_name}"

    def resolve(self, reference: str) -> Optional[Path]:
        if not reference.startswith(UPLOAD_PREFIX):
            return None
        upload_root = self.upload_dir.resolve()
        path = (self.upload_dir / reference[len(UPLOAD_PREFIX):]).resolve()
        try:
            path.relative_to(upload_root)
        except ValueError:
            return None
        return path if path.is_file() else None

    @staticmethod
    def to_data_uri(content_type: str, data: bytes) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type};base64,{encoded}"
