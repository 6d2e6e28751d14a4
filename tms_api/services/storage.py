# tms_api/services/storage.py
"""
Stores uploaded files (fuel receipts, logos) in Firebase Storage, or under
UPLOAD_DIR when no bucket is configured, and returns a public URL.
"""
import logging
import os
import re
import time
from typing import Optional

import firebase_admin
from firebase_admin import credentials, storage
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

from tms_api.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

_bucket = None


class StorageError(Exception):
    pass


def safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "")).strip("._")
    return name or "file"


def get_bucket():
    """Returns the Firebase Storage bucket, initializing the Firebase app on first use."""
    global _bucket
    if _bucket is None:
        try:
            app = firebase_admin.get_app()
        except ValueError:
            if settings.FIREBASE_CREDENTIALS_PATH:
                cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
            else:
                cred = credentials.ApplicationDefault()
            app = firebase_admin.initialize_app(cred, {"storageBucket": settings.FIREBASE_STORAGE_BUCKET})
        _bucket = storage.bucket(app=app)
    return _bucket


def _upload_to_bucket(storage_path: str, content: bytes, content_type: str) -> str:
    try:
        blob = get_bucket().blob(storage_path)
        blob.upload_from_string(content, content_type=content_type)
        blob.make_public()
    except (GoogleAPIError, GoogleAuthError) as e:
        logger.error(f"Error uploading {storage_path} to Firebase Storage: {e}", exc_info=True)
        raise StorageError(str(e)) from e
    logger.info(f"Uploaded {storage_path} to Firebase Storage ({len(content)} bytes)")
    return blob.public_url


def _write_local(folder: str, stored_name: str, content: bytes) -> str:
    target_dir = os.path.join(settings.UPLOAD_DIR, folder)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, stored_name), "wb") as f:
        f.write(content)
    logger.info(f"Stored upload {folder}/{stored_name} ({len(content)} bytes)")
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/{folder}/{stored_name}"


def save_upload(folder: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
    folder = safe_filename(folder)
    stored_name = f"{int(time.time() * 1000)}_{safe_filename(filename)}"
    if settings.FIREBASE_STORAGE_BUCKET:
        return _upload_to_bucket(f"{folder}/{stored_name}", content, content_type or "application/octet-stream")
    return _write_local(folder, stored_name, content)
