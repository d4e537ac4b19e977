import time
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class BlobStorageError(Exception):
    pass


class BlobStorage:
    """Public Supabase Storage bucket for user images."""

    def __init__(self, supabase: Client, bucket_name: str, max_bytes: Optional[int] = None):
        self.supabase = supabase
        self.bucket_name = bucket_name
        self.max_bytes = max_bytes

    @staticmethod
    def extension_for(content_type: Optional[str]) -> Optional[str]:
        return IMAGE_EXTENSIONS.get((content_type or "").lower())

    def validate_image(self, content: bytes, content_type: Optional[str]) -> str:
        """Return the file extension or raise ValueError."""
        extension = self.extension_for(content_type)
        if extension is None:
            raise ValueError("Only JPEG, PNG, GIF or WebP images are accepted")
        if not content:
            raise ValueError("Image is empty")
        if self.max_bytes is not None and len(content) > self.max_bytes:
            raise ValueError("Image is too large")
        return extension

    def upload_file(self, file_content: bytes, key: str, content_type: str) -> str:
        """Upload file to the bucket and return its public URL"""
        try:
            bucket = self.supabase.storage.from_(self.bucket_name)
            bucket.upload(key, file_content, {"content-type": content_type})
            return bucket.get_public_url(key)
        except Exception as e:
            logger.error(f"Failed to upload {key} to {self.bucket_name}: {str(e)}")
            raise BlobStorageError(str(e)) from e

    def upload_image(self, owner_id: str, content: bytes, content_type: str, folder: bool = False) -> str:
        """Store an image named after its owner and the upload time"""
        extension = self.validate_image(content, content_type)
        stamp = int(time.time() * 1000)
        key = f"{owner_id}/{stamp}.{extension}" if folder else f"{owner_id}-{stamp}.{extension}"
        return self.upload_file(content, key, content_type)
