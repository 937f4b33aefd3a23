from typing import Optional

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.pipeline import ImagePayload


class GalaxyCheckRequest(CamelModel):
    galaxy: str = Field(min_length=1, max_length=100)


class PlanetCreateRequest(GalaxyCheckRequest):
    planet: str = Field(min_length=1, max_length=50_000)


class ImageUploadRequest(GalaxyCheckRequest):
    img: ImagePayload


class ImageUploadResponse(CamelModel):
    id: int
    bucket: str
    object_key: str
    content_type: str
    size_bytes: int
    checksum_sha256: str
    galaxy_id: int
    signed_url: Optional[str] = None


class SignedUrlResponse(CamelModel):
    id: int
    signed_url: Optional[str] = None
