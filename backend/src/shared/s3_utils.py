"""
S3 utility functions for task media.
Task images and submission screenshots are stored by path; public URLs are
derived from bucket + path without a network call.
"""
from typing import List

import boto3
from botocore.exceptions import ClientError

from .config import config
from .errors import StorageError
from .logging import logger

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


class MediaStorage:
    """Object storage for task images and submission screenshots."""

    def __init__(self, client=None, region_name: str = None):
        self.region = region_name or config.AWS_REGION
        self.client = client or boto3.client('s3', region_name=self.region)

    def public_url(self, bucket: str, path: str) -> str:
        """
        Public URL of an object. Pure derivation, no request is made.

        Args:
            bucket: Bucket name (e.g. 'task-images')
            path: Stored object path, or an already-absolute URL

        Returns:
            Absolute URL, or None for an empty path
        """
        if not path:
            return None

        # Already a full URL (external image or legacy row)
        if path.startswith('http://') or path.startswith('https://'):
            return path

        clean_path = path[1:] if path.startswith('/') else path
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{clean_path}"

    def delete_objects(self, bucket: str, paths: List[str]) -> int:
        """
        Delete objects by stored path.

        Args:
            bucket: Bucket name
            paths: Object paths; empty values are ignored

        Returns:
            Number of objects S3 reported as deleted

        Raises:
            StorageError: if the request fails or S3 reports per-key errors
        """
        keys = [p[1:] if p.startswith('/') else p for p in paths if p]
        if not keys:
            return 0

        deleted = 0
        failed = []
        for i in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[i:i + DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=bucket,
                    Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': False}
                )
            except ClientError as e:
                raise StorageError(f"Error deleting {len(batch)} objects from {bucket}: {e}") from e

            deleted += len(response.get('Deleted', []))
            failed.extend(err.get('Key') for err in response.get('Errors', []))

        if failed:
            raise StorageError(f"Could not delete {len(failed)} objects from {bucket}: {failed}")

        logger.info(f"Deleted {deleted} objects from {bucket}")
        return deleted


_default_storage = None


def get_storage() -> MediaStorage:
    """Get or create the container-wide MediaStorage."""
    global _default_storage
    if _default_storage is None:
        _default_storage = MediaStorage()
    return _default_storage


def reset_storage() -> None:
    global _default_storage
    _default_storage = None
