"""
Image upload endpoint used by the post editor.
"""
import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import CurrentUser, get_current_user
from app.core.errors import ValidationFailed
from app.core.validators import MAX_UPLOAD_BYTES, decode_data_url, validate_file_name
from app.schemas.late import UploadImageRequest, UploadImageResponse
from app.services.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


@router.post("/upload-image", response_model=UploadImageResponse)
async def upload_image(
    request_data: UploadImageRequest,
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Store a base64 image and return its public URL.

    Raises:
        ValidationFailed 400: Bad file name, non-image data or over 50MB
    """
    ok, error = validate_file_name(request_data.filename)
    if not ok:
        raise ValidationFailed(error)
    try:
        mime, data = decode_data_url(request_data.imageData)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e
    if not mime.startswith("image/"):
        raise ValidationFailed("Only images can be uploaded")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationFailed("Image is too large")

    stored = await BlobStorage().put(f"uploads/{current_user.id}/{request_data.filename}", data, mime)
    logger.info(f"[UPLOADS] User {current_user.id} uploaded {stored['pathname']}")
    return UploadImageResponse(url=stored["url"], filename=request_data.filename)
