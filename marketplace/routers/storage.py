"""
Object storage endpoints: upload to a bucket and download a stored object.
"""

from fastapi import APIRouter, Depends, UploadFile, File, Query, status
from fastapi.responses import FileResponse
from marketplace.models.user import User
from marketplace.services.storage import StorageService, Bucket
from marketplace.schemas.storage import StoredObjectResponse
from marketplace.schemas.error import get_error_responses
from marketplace.utils.dependencies import get_current_active_user, get_storage_service


router = APIRouter(prefix="/storage", tags=["Storage"])


@router.post(
    "/{bucket}",
    response_model=StoredObjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description=(
        "Store a file in kyc-documents, property-images or property-documents. "
        "The returned path is what verification data and listings reference."
    ),
    responses=get_error_responses(400, 401, 422)
)
async def upload_file(
    bucket: Bucket,
    file: UploadFile = File(..., description="File to upload"),
    current_user: User = Depends(get_current_active_user),
    storage: StorageService = Depends(get_storage_service)
) -> StoredObjectResponse:
    stored = await storage.upload(current_user.id, bucket, file)
    return StoredObjectResponse.model_validate(stored.to_dict())


@router.get(
    "/file",
    response_class=FileResponse,
    summary="Download a stored file",
    description="Owners can read their own files; admins can read any",
    responses=get_error_responses(401, 403, 404)
)
async def download_file(
    path: str = Query(..., description="Stored-object path returned by the upload"),
    current_user: User = Depends(get_current_active_user),
    storage: StorageService = Depends(get_storage_service)
) -> FileResponse:
    file_path = storage.resolve(path, current_user.id, is_admin=current_user.is_admin)
    return FileResponse(path=str(file_path), filename=file_path.name)
