# app/core/storage_utils.py
"""
Product photos in Supabase Storage.

Objects live under `products/<product id>/<random>.<ext>` in the
SUPABASE_STORAGE_BUCKET bucket and are referenced by their public URL.
"""

import uuid
from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings

settings = get_settings()


@lru_cache
def supabase_admin() -> Client:
    """
    Service-role client (bypasses RLS). Backend only; created on first use
    so the API boots without storage credentials.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def _bucket():
    return supabase_admin().storage.from_(settings.SUPABASE_STORAGE_BUCKET)


def upload_to_storage(path: str, file_bytes: bytes, content_type: str) -> str:
    """Upload (or overwrite) an object and return its public URL."""
    bucket = _bucket()
    bucket.upload(path, file_bytes, {"upsert": "true", "content-type": content_type})
    return bucket.get_public_url(path)


def extract_path_from_public_url(url: str) -> str | None:
    """
    .../storage/v1/object/public/<bucket>/products/p/x.png -> products/p/x.png

    None for URLs outside our bucket (e.g. images pasted by hand).
    """
    marker = f"/storage/v1/object/public/{settings.SUPABASE_STORAGE_BUCKET}/"
    _, found, path = url.partition(marker)
    if not found:
        return None
    return path or None


def delete_public_url(url: str) -> None:
    path = extract_path_from_public_url(url)
    if path:
        _bucket().remove([path])


def generate_filename(ext: str) -> str:
    return f"{uuid.uuid4()}.{ext}"
