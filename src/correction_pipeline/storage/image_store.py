"""S3 storage for scanned diary images."""

import logging
import time
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError

from correction_pipeline.exceptions import StorageError

logger = logging.getLogger(__name__)

MAX_UPLOAD_RETRIES = 3
RETRY_DELAY_SECONDS = 2

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def image_key(user_id: str, diary_id: str, media_type: str) -> str:
    """S3 object key of a diary's scanned image."""
    return f"scans/{user_id}/{diary_id}.{_EXTENSIONS.get(media_type, 'jpg')}"


class ImageStore:
    """Uploads scanned images to the images bucket."""

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        retries: int = MAX_UPLOAD_RETRIES,
        delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the ImageStore.

        Args:
            s3_client (Any): The S3 client instance.
            bucket (str): The bucket holding scanned images.
            retries (int): Number of upload attempts. Defaults to 3.
            delay (float): Delay in seconds between attempts. Defaults to 2.
            sleep: Wait function, replaceable in tests.
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.retries = retries
        self.delay = delay
        self.sleep = sleep

    def put_scan(self, user_id: str, diary_id: str, image_bytes: bytes, media_type: str) -> str:
        """Uploads a scanned image, retrying on failure.

        Args:
            user_id (str): Owner of the diary.
            diary_id (str): Diary the image belongs to.
            image_bytes (bytes): Raw image content.
            media_type (str): Content type of the image.

        Returns:
            str: The S3 key the image was stored under.

        Raises:
            StorageError: If all attempts fail.
        """
        key = image_key(user_id, diary_id, media_type)
        attempt = 0
        while attempt < self.retries:
            try:
                self.s3_client.put_object(Bucket=self.bucket, Key=key, Body=image_bytes, ContentType=media_type)
                logger.info(f"Uploaded scanned image to s3://{self.bucket}/{key}")
                return key
            except Exception as e:
                attempt += 1
                logger.error(f"Upload failed for {key} (attempt {attempt}): {e}")
                if attempt < self.retries:
                    self.sleep(self.delay)
                else:
                    raise StorageError(f"Failed to upload scanned image {key}") from e
        raise StorageError(f"Failed to upload scanned image {key}")

    def delete(self, key: str) -> None:
        """Removes a stored image.

        Raises:
            StorageError: If the object could not be deleted.
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete s3://{self.bucket}/{key}: {e}")
            raise StorageError(f"Failed to delete scanned image {key}") from e
        logger.info(f"Deleted s3://{self.bucket}/{key}")
