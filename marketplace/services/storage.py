"""
Object storage for KYC documents, property images and ownership documents.

Files are validated (size, MIME type per bucket, real image/PDF content) and
written under ``UPLOAD_DIR/<bucket>/<owner_id>/<uuid><ext>``. The returned
stored-object path is what verification and property records reference.
"""

import io
import uuid
import enum
import logging
from pathlib import Path
from typing import Dict, List, Optional
from PIL import Image, UnidentifiedImageError
import aiofiles
from fastapi import UploadFile

from marketplace.config import settings
from marketplace.utils.exceptions import (
    ValidationError,
    NotFoundError,
    FileUploadError,
    UnsupportedFileTypeError,
    FileSizeExceededError,
    InsufficientPermissionsError,
)

logger = logging.getLogger(__name__)


class Bucket(str, enum.Enum):
    KYC_DOCUMENTS = "kyc-documents"
    PROPERTY_IMAGES = "property-images"
    PROPERTY_DOCUMENTS = "property-documents"


# Extensions accepted for each MIME type
EXTENSIONS: Dict[str, List[str]] = {
    "image/jpeg": [".jpg", ".jpeg"],
    "image/png": [".png"],
    "image/webp": [".webp"],
    "application/pdf": [".pdf"],
}

PIL_FORMATS: Dict[str, List[str]] = {
    "image/jpeg": ["jpeg", "jpg", "mpo"],
    "image/png": ["png"],
    "image/webp": ["webp"],
}


class StoredObject:
    """Result of an upload."""

    def __init__(self, bucket: Bucket, path: str, size: int, content_type: str):
        self.bucket = bucket
        self.path = path
        self.size = size
        self.content_type = content_type

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket.value,
            "path": self.path,
            "size": self.size,
            "content_type": self.content_type,
        }


class StorageService:
    """Local-disk object storage with per-bucket validation."""

    def __init__(self, upload_dir: Optional[str] = None, max_file_size: Optional[int] = None):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.max_file_size = max_file_size or settings.max_file_size
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def allowed_types(self, bucket: Bucket) -> List[str]:
        if bucket == Bucket.PROPERTY_IMAGES:
            return list(settings.allowed_image_types)
        return list(settings.allowed_document_types)

    def validate(self, bucket: Bucket, filename: Optional[str], content_type: Optional[str], content: bytes) -> str:
        """
        Validate an upload for a bucket.

        Returns:
            The normalized file extension

        Raises:
            ValidationError: If the file is empty, misnamed or not what it claims to be
            UnsupportedFileTypeError: If the MIME type is not allowed in the bucket
            FileSizeExceededError: If the file is too large
        """
        if not filename:
            raise ValidationError("Filename is required")

        if not content:
            raise ValidationError("Uploaded file is empty")

        if len(content) > self.max_file_size:
            raise FileSizeExceededError(len(content), self.max_file_size)

        allowed = self.allowed_types(bucket)
        if content_type not in allowed:
            raise UnsupportedFileTypeError(content_type or "unknown", allowed)

        extension = Path(filename).suffix.lower()
        if extension not in EXTENSIONS.get(content_type, []):
            raise ValidationError(
                f"File extension '{extension}' does not match content type {content_type}"
            )

        if content_type == "application/pdf":
            if not content.startswith(b"%PDF-"):
                raise ValidationError("File content is not a valid PDF document")
        else:
            self._validate_image(content, content_type)

        return extension

    @staticmethod
    def _validate_image(content: bytes, content_type: str) -> None:
        try:
            with Image.open(io.BytesIO(content)) as img:
                pil_format = (img.format or "").lower()
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ValidationError(f"Invalid image file: {str(e)}")

        if pil_format not in PIL_FORMATS.get(content_type, []):
            raise ValidationError(f"File content doesn't match declared type {content_type}")

    async def upload(self, owner_id: uuid.UUID, bucket: Bucket, file: UploadFile) -> StoredObject:
        """
        Validate and store an uploaded file.

        Returns:
            StoredObject whose ``path`` is relative to the upload root
        """
        await file.seek(0)
        content = await file.read()

        extension = self.validate(bucket, file.filename, file.content_type, content)

        relative_path = Path(bucket.value) / str(owner_id) / f"{uuid.uuid4()}{extension}"
        file_path = self.upload_dir / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            # Clean up partial file if it exists
            if file_path.exists():
                file_path.unlink()
            logger.error(f"Failed to write {file_path}: {e}", exc_info=True)
            raise FileUploadError(str(e))

        stored = StoredObject(bucket, relative_path.as_posix(), len(content), file.content_type)
        logger.info(f"Stored {stored.path} ({stored.size} bytes) for owner {owner_id}")
        return stored

    def resolve(self, path: str, requester_id: uuid.UUID, is_admin: bool = False) -> Path:
        """
        Map a stored-object path to a file on disk, enforcing ownership.

        Raises:
            NotFoundError: If the path is malformed or the file is missing
            InsufficientPermissionsError: If the requester neither owns it nor is admin
        """
        parts = Path(path).parts
        if len(parts) != 3 or parts[0] not in {b.value for b in Bucket} or ".." in parts:
            raise NotFoundError("Stored object", path)

        if parts[1] != str(requester_id) and not is_admin:
            raise InsufficientPermissionsError("read this file")

        file_path = (self.upload_dir / path).resolve()
        if self.upload_dir.resolve() not in file_path.parents or not file_path.is_file():
            raise NotFoundError("Stored object", path)

        return file_path

    def delete(self, path: str) -> bool:
        file_path = self.upload_dir / path
        if file_path.is_file():
            file_path.unlink()
            logger.info(f"Deleted stored object {path}")
            return True
        return False
