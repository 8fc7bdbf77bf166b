# core/supabase_client.py
# Supabase Storage client for user-uploaded images (avatars, event covers)

import logging

from django.conf import settings
from rest_framework import status

from .exceptions import CrewError

logger = logging.getLogger("crew.core")

_supabase_client = None


class StorageUnavailable(CrewError):
    """Storage is not configured, or the upload/delete call failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Image storage is temporarily unavailable."
    default_code = "storage_unavailable"


def get_supabase_client():
    """
    Get the Supabase client instance (singleton pattern).
    Uses service_role key for admin access.
    """
    global _supabase_client

    if _supabase_client is None:
        from supabase import create_client

        url = settings.SUPABASE_URL
        key = settings.SUPABASE_SERVICE_ROLE_KEY

        if not url or not key:
            logger.warning("Supabase credentials not configured")
            return None

        _supabase_client = create_client(url, key)
        logger.info("Supabase client initialized")

    return _supabase_client


def _bucket():
    client = get_supabase_client()
    if client is None:
        raise StorageUnavailable("Image storage is not configured.")
    return client.storage.from_(settings.SUPABASE_STORAGE_BUCKET)


def put(path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
    """
    Upload `content` to the storage bucket at `path`, replacing any existing
    object, and return its public display URL.
    """
    bucket = _bucket()
    try:
        bucket.upload(
            path,
            content,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        url = bucket.get_public_url(path)
    except Exception as e:
        logger.error(f"Failed to upload {path} to storage: {e}")
        raise StorageUnavailable() from e

    logger.info(f"Uploaded object to storage: {path}")
    return url


def delete(path: str) -> None:
    bucket = _bucket()
    try:
        bucket.remove([path])
    except Exception as e:
        logger.error(f"Failed to delete {path} from storage: {e}")
        raise StorageUnavailable() from e
    logger.info(f"Deleted object from storage: {path}")
