"""Image payload helpers for vision requests."""

# Leading characters of the base64 encoding of each format's magic bytes
_BASE64_SIGNATURES = (
    ("/9j/", "image/jpeg"),
    ("iVBORw", "image/png"),
    ("R0lGOD", "image/gif"),
    ("UklGR", "image/webp"),
)

DEFAULT_MEDIA_TYPE = "image/jpeg"

SUPPORTED_MEDIA_TYPES = {media_type for _, media_type in _BASE64_SIGNATURES}


def strip_data_url_prefix(image_base64: str) -> str:
    """Removes a ``data:image/...;base64,`` prefix if present."""
    if image_base64.startswith("data:") and "," in image_base64:
        return image_base64.split(",", 1)[1]
    return image_base64


def detect_media_type(image_base64: str) -> str:
    """Guesses the media type of a base64 image from its leading bytes, defaulting to JPEG."""
    for prefix, media_type in _BASE64_SIGNATURES:
        if image_base64.startswith(prefix):
            return media_type
    return DEFAULT_MEDIA_TYPE


def image_format(media_type: str) -> str:
    """Bedrock image format name (jpeg, png, gif, webp) for a media type."""
    subtype = media_type.split("/")[-1].lower() if media_type else ""
    if subtype == "jpg":
        return "jpeg"
    return subtype or "jpeg"
