# storefront/uploads.py
import logging
import re
import uuid
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public,max-age=31536000"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
PUBLIC_URL_TEMPLATE = "https://storage.googleapis.com/{bucket}/{path}"


def file_extension(filename: Optional[str]) -> str:
    normalized = re.sub(r"\s+", "-", filename or "").lower() or "upload"
    if "." not in normalized:
        return "bin"
    return normalized.rsplit(".", 1)[-1] or "bin"


def build_object_path(filename: Optional[str], now: Optional[datetime] = None) -> str:
    year = (now or datetime.now()).year
    return f"products/{year}/{uuid.uuid4()}.{file_extension(filename)}"


def upload_asset(bucket, data: bytes, filename: Optional[str], content_type: Optional[str] = None) -> str:
    """Store `data` publicly under products/{year}/ and return its public URL. Blocking."""
    path = build_object_path(filename)
    blob = bucket.blob(path)
    blob.cache_control = CACHE_CONTROL
    blob.upload_from_string(data, content_type=content_type or DEFAULT_CONTENT_TYPE)
    blob.make_public()
    logger.info("uploaded %d bytes to %s", len(data), path)
    return PUBLIC_URL_TEMPLATE.format(bucket=bucket.name, path=path)
