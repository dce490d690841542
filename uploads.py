"""
Image hosting (Cloudinary)

Uploads go through an unsigned upload preset; deletes use the account's API
credentials. Both go through the cloudinary SDK, configured once at import.
"""

import logging
import os
from typing import BinaryIO, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

logger = logging.getLogger(__name__)

CLOUDINARY_NAME = os.getenv("CLOUDINARY_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_SECRET = os.getenv("CLOUDINARY_SECRET", "")
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "website")
UPLOAD_TIMEOUT_SECONDS = float(os.getenv("UPLOAD_TIMEOUT_SECONDS", "30"))

BLOG_IMAGES_TAG = "blog_images"
PRODUCT_IMAGES_TAG = "product_images"

cloudinary.config(
    cloud_name=CLOUDINARY_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_SECRET,
    secure=True,
)


class ImageUploadError(Exception):
    pass


def upload_image(file: BinaryIO, filename: str, tag: str) -> dict:
    """Upload one image and return ``{"url": secure_url, "public_id": ...}``."""
    if not CLOUDINARY_NAME:
        raise ImageUploadError("Image hosting is not configured")
    try:
        result = cloudinary.uploader.unsigned_upload(
            file,
            CLOUDINARY_UPLOAD_PRESET,
            tags=[tag],
            timeout=UPLOAD_TIMEOUT_SECONDS,
        )
    except CloudinaryError as exc:
        logger.error("Error uploading image %s: %s", filename, exc)
        raise ImageUploadError(f"Failed to upload image: {exc}") from exc

    url, public_id = result.get("secure_url"), result.get("public_id")
    if not url or not public_id:
        raise ImageUploadError("Invalid image upload response")
    logger.info("Uploaded image %s", public_id)
    return {"url": str(url), "public_id": str(public_id)}


def destroy_image(public_id: Optional[str]) -> bool:
    """Delete a hosted image. Never raises; a leftover image is only storage."""
    if not public_id:
        return False
    if not (CLOUDINARY_NAME and CLOUDINARY_API_KEY and CLOUDINARY_SECRET):
        logger.warning("Skipping delete of image %s: image hosting credentials not set", public_id)
        return False
    try:
        result = cloudinary.uploader.destroy(public_id, timeout=UPLOAD_TIMEOUT_SECONDS)
    except Exception:
        logger.exception("Failed to delete image %s", public_id)
        return False
    if result.get("result") != "ok":
        logger.warning("Delete of image %s answered %s", public_id, result.get("result"))
        return False
    logger.info("Deleted image %s", public_id)
    return True
