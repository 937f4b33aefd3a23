import base64
import binascii
import hashlib
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.errors import (
    ImageTooLargeError,
    InvalidImageError,
    StorageError,
    UnsupportedImageTypeError,
)
from app.db.models import Image

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 6 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}
EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}

DATA_URL_RE = re.compile(r"^data:(.*?);base64,(.*)$", re.DOTALL)

# Some CDNs serve low-res placeholders or refuse requests without these.
FETCH_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
}


@dataclass
class DecodedImage:
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return EXTENSIONS.get(self.content_type, "bin")

    @property
    def checksum_sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    def data_url(self) -> str:
        return f"data:{self.content_type};base64,{base64.b64encode(self.data).decode('utf-8')}"


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lowercase, drop parameters, and map the non-standard image/jpg alias."""
    ct = (content_type or "").split(";")[0].strip().lower()
    return "image/jpeg" if ct == "image/jpg" else ct


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Invalid base64 image data: {e}")


async def fetch_image(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> tuple[bytes, str]:
    """Download a remote image, returning its bytes and reported content type."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidImageError("Image url must be an absolute http(s) URL")

    headers = dict(FETCH_HEADERS, Referer=f"{parsed.scheme}://{parsed.netloc}/")
    try:
        async with httpx.AsyncClient(
            transport=transport, follow_redirects=True, timeout=30
        ) as client:
            res = await client.get(url, headers=headers)
            res.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise InvalidImageError(f"Failed to fetch image ({e.response.status_code})")
    except httpx.HTTPError as e:
        logger.info(f"Image fetch failed for {url}: {e}")
        raise InvalidImageError(f"Failed to fetch image URL: {e}")

    return res.content, res.headers.get("content-type", "")


async def decode_image(
    payload: dict, transport: Optional[httpx.AsyncBaseTransport] = None
) -> DecodedImage:
    """
    Turn an ``img`` payload into bytes plus a content type.

    Accepts ``{"base64", "contentType"}``, ``{"dataUrl"}`` or ``{"url"}``.
    An explicit ``contentType`` wins over the data URL prefix, while a
    fetched image's response header wins over ``contentType``.
    """
    content_type = payload.get("contentType") or ""

    if payload.get("base64"):
        return DecodedImage(_b64decode(payload["base64"]), content_type)

    data_url = payload.get("dataUrl")
    if isinstance(data_url, str) and data_url.startswith("data:"):
        match = DATA_URL_RE.match(data_url)
        if not match:
            raise InvalidImageError("Invalid dataUrl")
        ct, b64 = match.groups()
        return DecodedImage(_b64decode(b64), content_type or ct)

    if payload.get("url"):
        data, fetched_ct = await fetch_image(payload["url"], transport=transport)
        return DecodedImage(data, fetched_ct or content_type)

    raise InvalidImageError("Missing image payload: expected base64, dataUrl, or url")


def validate_image(image: DecodedImage) -> DecodedImage:
    """Normalize the content type and enforce the allowed types and size cap."""
    image.content_type = normalize_content_type(image.content_type)
    if image.content_type not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedImageTypeError(f"Unsupported image type: {image.content_type or 'unknown'}")
    if image.size > MAX_IMAGE_BYTES:
        raise ImageTooLargeError("Image is larger than 6MB")
    if image.size == 0:
        raise InvalidImageError("Image is empty")
    return image


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).strip().lower())
    return slug.strip("-")


def build_object_key(user_id: int, galaxy_name: str, ext: str, file_id: Optional[str] = None) -> str:
    file_id = file_id or str(uuid.uuid4())
    return f"{user_id}/{slugify(galaxy_name) or 'untitled'}/{file_id}.{ext}"


async def store_image(db, storage, user_id: int, image: DecodedImage, galaxy) -> Image:
    """
    Upload the blob, then record the Image row filed under ``galaxy``.
    The blob is removed again if the row cannot be written.
    """
    bucket = settings.STORAGE_BUCKET
    object_key = build_object_key(user_id, galaxy.name, image.extension)
    await storage.upload(bucket, object_key, image.data, image.content_type)

    row = Image(
        user_id=user_id,
        bucket=bucket,
        object_key=object_key,
        content_type=image.content_type,
        size_bytes=image.size,
        checksum_sha256=image.checksum_sha256,
        is_public=False,
        galaxies=[galaxy],
    )
    db.add(row)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        try:
            await storage.remove(bucket, object_key)
        except StorageError as e:
            logger.warning(f"Could not remove orphaned blob {bucket}/{object_key}: {e}")
        raise
    await db.refresh(row)
    return row
