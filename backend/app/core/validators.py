"""
Validation utilities for uploads and request parameters.
"""
import base64
import binascii
import re
from typing import Optional, Tuple

# Client portal uploads
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

ALLOWED_UPLOAD_TYPES = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
    "image/webp": {".webp"},
    "video/mp4": {".mp4"},
    "video/quicktime": {".mov"},
    "video/x-msvideo": {".avi"},
    "video/webm": {".webm"},
    "application/pdf": {".pdf"},
}

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def validate_file_name(file_name: str) -> Tuple[bool, str]:
    """
    Reject empty names and anything that looks like a path.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not file_name or not file_name.strip():
        return False, "File name is required"
    if ".." in file_name or "/" in file_name or "\\" in file_name:
        return False, "Invalid file name"
    if len(file_name) > 255:
        return False, "File name is too long"
    return True, ""


def validate_upload_type(file_name: str, file_type: str) -> Tuple[bool, str]:
    """
    Check the MIME type against the allow-list and make sure the extension matches it.

    Returns:
        Tuple of (is_valid, error_message)
    """
    extensions = ALLOWED_UPLOAD_TYPES.get((file_type or "").lower())
    if extensions is None:
        return False, f"File type {file_type} is not allowed"

    dot = file_name.rfind(".")
    extension = file_name[dot:].lower() if dot != -1 else ""
    if extension not in extensions:
        return False, "File extension does not match file type"
    return True, ""


def decode_data_url(data: str, default_mime: str = "image/jpeg") -> Tuple[str, bytes]:
    """
    Decode a base64 data URL (or a bare base64 string).

    Returns:
        Tuple of (mime_type, raw_bytes)

    Raises:
        ValueError: If the payload is not valid base64
    """
    mime = default_mime
    payload = data
    match = DATA_URL_PATTERN.match(data)
    if match:
        mime = match.group("mime")
        payload = match.group("data")
    try:
        return mime, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Invalid base64 data") from e


def clamp_limit(raw: Optional[str], default: int, maximum: int) -> int:
    """
    Parse a ``limit`` query value, capped at ``maximum``.

    Unparsable or non-positive values fall back to the default.
    """
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


def clamp_offset(raw: Optional[str]) -> int:
    try:
        value = int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        return 0
    return max(value, 0)
