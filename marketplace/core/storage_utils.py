# marketplace/core/storage_utils.py
import uuid
from typing import NamedTuple

from marketplace.core.config import get_settings
from marketplace.core.supabase_client import supabase_admin


class StoredBlob(NamedTuple):
    """Handle returned by the blob store: object path (id) + public URL."""

    id: str
    url: str


def _bucket():
    return supabase_admin().storage.from_(get_settings().STORAGE_BUCKET)


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4.

    Args:
        ext: File extension without dot (e.g. "png", "jpg")

    Returns:
        A filename like "<uuid4>.png"
    """
    return f"{uuid.uuid4()}.{ext}"


def upload_blob(folder: str, ext: str, file_bytes: bytes) -> StoredBlob:
    """
    Upload raw bytes to Supabase Storage under a random filename.

    Args:
        folder: Path prefix inside the bucket, e.g. "products/<uuid>".
        ext: File extension without dot.
        file_bytes: File content in bytes.

    Returns:
        StoredBlob(id=<object path>, url=<public URL>).

    Raises:
        Any exception raised by Supabase client if upload fails.
    """
    path = f"{folder}/{generate_filename(ext)}"
    bucket = _bucket()
    bucket.upload(path, file_bytes, {"upsert": "true"})
    return StoredBlob(id=path, url=bucket.get_public_url(path))


def delete_blob(blob_id: str) -> None:
    """
    Delete a file from Supabase Storage by its object path.

    Example id (relative to bucket):
        'products/<uuid>/<uuid>.png'
    """
    # Supabase Python client expects a list of paths.
    _bucket().remove([blob_id])
