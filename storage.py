"""Cloudinary video storage."""
import os
import logging
from typing import Dict, Any

import cloudinary
import cloudinary.uploader
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

VIDEO_FOLDER = "vantage_vision"

cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True,
)


def upload_video(path: str) -> Dict[str, Any]:
    """Upload a local video file. The result carries `secure_url` and `public_id`."""
    result = cloudinary.uploader.upload(path, resource_type="video", folder=VIDEO_FOLDER)
    logger.info("Uploaded %s to Cloudinary as %s", os.path.basename(path), result.get("public_id"))
    return result


def delete_video(public_id: str) -> None:
    cloudinary.uploader.destroy(public_id, resource_type="video")
    logger.info("Deleted Cloudinary video %s", public_id)
