"""
Tests for file storage: validation per bucket, writing and access control.
"""

import io
import uuid
import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from marketplace.services.storage import Bucket
from marketplace.utils.exceptions import (
    ValidationError,
    NotFoundError,
    UnsupportedFileTypeError,
    FileSizeExceededError,
    InsufficientPermissionsError,
)
from tests.conftest import make_image_bytes


PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


def make_upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestValidation:
    """Per-bucket content checks."""

    def test_valid_jpeg(self, storage_service):
        extension = storage_service.validate(
            Bucket.PROPERTY_IMAGES, "front.JPG", "image/jpeg", make_image_bytes("JPEG")
        )
        assert extension == ".jpg"

    def test_valid_png(self, storage_service):
        assert storage_service.validate(
            Bucket.PROPERTY_IMAGES, "plan.png", "image/png", make_image_bytes("PNG")
        ) == ".png"

    def test_pdf_not_allowed_for_images(self, storage_service):
        with pytest.raises(UnsupportedFileTypeError):
            storage_service.validate(Bucket.PROPERTY_IMAGES, "deed.pdf", "application/pdf", PDF_BYTES)

    def test_pdf_allowed_for_documents(self, storage_service):
        assert storage_service.validate(
            Bucket.PROPERTY_DOCUMENTS, "deed.pdf", "application/pdf", PDF_BYTES
        ) == ".pdf"

    def test_fake_pdf(self, storage_service):
        with pytest.raises(ValidationError, match="not a valid PDF"):
            storage_service.validate(Bucket.KYC_DOCUMENTS, "passport.pdf", "application/pdf", b"hello world")

    def test_fake_image(self, storage_service):
        with pytest.raises(ValidationError, match="Invalid image"):
            storage_service.validate(Bucket.PROPERTY_IMAGES, "front.jpg", "image/jpeg", b"not really a jpeg")

    def test_declared_type_mismatch(self, storage_service):
        with pytest.raises(ValidationError, match="doesn't match"):
            storage_service.validate(Bucket.PROPERTY_IMAGES, "front.jpg", "image/jpeg", make_image_bytes("PNG"))

    def test_extension_mismatch(self, storage_service):
        with pytest.raises(ValidationError, match="extension"):
            storage_service.validate(Bucket.PROPERTY_IMAGES, "front.png", "image/jpeg", make_image_bytes("JPEG"))

    def test_empty_file(self, storage_service):
        with pytest.raises(ValidationError, match="empty"):
            storage_service.validate(Bucket.PROPERTY_IMAGES, "front.jpg", "image/jpeg", b"")

    def test_size_limit(self, storage_service):
        oversized = b"%PDF-" + b"0" * storage_service.max_file_size
        with pytest.raises(FileSizeExceededError):
            storage_service.validate(Bucket.KYC_DOCUMENTS, "big.pdf", "application/pdf", oversized)


class TestUploadAndResolve:
    """Writing files and reading them back."""

    @pytest.mark.asyncio
    async def test_upload_writes_file(self, storage_service):
        owner_id = uuid.uuid4()
        content = make_image_bytes("JPEG")

        stored = await storage_service.upload(owner_id, Bucket.PROPERTY_IMAGES, make_upload(content, "a.jpg", "image/jpeg"))

        assert stored.path.startswith(f"property-images/{owner_id}/")
        assert stored.path.endswith(".jpg")
        assert stored.size == len(content)
        assert (storage_service.upload_dir / stored.path).read_bytes() == content

    @pytest.mark.asyncio
    async def test_rejected_upload_writes_nothing(self, storage_service):
        owner_id = uuid.uuid4()

        with pytest.raises(ValidationError):
            await storage_service.upload(owner_id, Bucket.KYC_DOCUMENTS, make_upload(b"junk", "id.pdf", "application/pdf"))

        assert not (storage_service.upload_dir / Bucket.KYC_DOCUMENTS.value / str(owner_id)).exists()

    @pytest.mark.asyncio
    async def test_resolve_owner_and_admin(self, storage_service):
        owner_id = uuid.uuid4()
        stored = await storage_service.upload(owner_id, Bucket.KYC_DOCUMENTS, make_upload(PDF_BYTES, "id.pdf", "application/pdf"))

        assert storage_service.resolve(stored.path, owner_id).is_file()
        assert storage_service.resolve(stored.path, uuid.uuid4(), is_admin=True).is_file()

        with pytest.raises(InsufficientPermissionsError):
            storage_service.resolve(stored.path, uuid.uuid4())

    @pytest.mark.parametrize("path", [
        "../etc/passwd",
        "kyc-documents/../../secret.pdf",
        "unknown-bucket/abc/file.pdf",
        "kyc-documents/file.pdf",
    ])
    def test_resolve_malformed_paths(self, storage_service, path):
        with pytest.raises(NotFoundError):
            storage_service.resolve(path, uuid.uuid4(), is_admin=True)

    def test_resolve_missing_file(self, storage_service):
        owner_id = uuid.uuid4()
        with pytest.raises(NotFoundError):
            storage_service.resolve(f"kyc-documents/{owner_id}/missing.pdf", owner_id)

    @pytest.mark.asyncio
    async def test_delete(self, storage_service):
        owner_id = uuid.uuid4()
        stored = await storage_service.upload(owner_id, Bucket.PROPERTY_DOCUMENTS, make_upload(PDF_BYTES, "d.pdf", "application/pdf"))

        assert storage_service.delete(stored.path)
        assert not storage_service.delete(stored.path)
