"""PDF attachment storage backed by Cloudinary."""

import io
import logging

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from errors import UpstreamFailure
from settings import Settings

logger = logging.getLogger(__name__)

PDF_FOLDER = "poetic-vault/pdfs"


class CloudinaryStore:
    def __init__(self, settings: Settings):
        self.credentials = {
            "cloud_name": settings.cloudinary_cloud_name,
            "api_key": settings.cloudinary_api_key,
            "api_secret": settings.cloudinary_api_secret,
        }

    @property
    def configured(self) -> bool:
        return all(self.credentials.values())

    def store(self, data: bytes, filename: str) -> str:
        """Upload `data` and return its public https URL."""
        if not self.configured:
            raise UpstreamFailure("File storage is not configured")
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                resource_type="auto",
                folder=PDF_FOLDER,
                filename_override=filename,
                secure=True,
                **self.credentials,
            )
        except CloudinaryError as exc:
            logger.error("Cloudinary upload of %s failed: %s", filename, exc)
            raise UpstreamFailure("File upload failed") from exc
        except OSError as exc:
            logger.error("Cloudinary unreachable while uploading %s: %s", filename, exc)
            raise UpstreamFailure("File upload failed") from exc
        return result["secure_url"]
