import base64
import binascii
from typing import Tuple

from fastapi import HTTPException, status

SHARE_CAPTION_PREFIX = "Check out this new ad created with Visioncraft AI! #Visioncraft #AI #Design \n\n"
SHARE_CAPTION_EXCERPT_CHARS = 50


def clean_base64(data: str) -> str:
    """
    Strip a data URL prefix from a base64 payload.

    Args:
        data (str): Either raw base64 text or a full ``data:<mime>;base64,<data>`` URL.

    Returns:
        str: The raw base64 text expected by the image service.
    """
    if "," in data:
        return data.split(",", 1)[1]
    return data


def to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Split a data URL into its decoded bytes and MIME type."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:"):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored image is not a valid data URL.",
        )
    mime_type = header[len("data:"):].split(";")[0] or "image/png"
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except binascii.Error as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored image is not valid base64.",
        ) from exc


def build_share_caption(description: str) -> str:
    # The excerpt is always followed by an ellipsis, even for short briefs.
    return f"{SHARE_CAPTION_PREFIX}{description[:SHARE_CAPTION_EXCERPT_CHARS]}..."


IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


def image_filename(stem: str, mime_type: str) -> str:
    """Name a file after ``stem`` with the extension matching ``mime_type``."""
    subtype = mime_type.partition("/")[2].split("+")[0]
    extension = IMAGE_EXTENSIONS.get(mime_type) or subtype or "png"
    return f"{stem}.{extension}"
