from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class GalaxyCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class GalaxyRename(GalaxyCreate):
    pass


class GalaxyRead(CamelModel):
    id: int
    name: str
    shareable: bool = False
    created_at: Optional[datetime] = None


class PlanetRead(CamelModel):
    id: int
    content: str
    created_at: Optional[datetime] = None


class ImageRead(CamelModel):
    id: int
    bucket: str
    object_key: str
    content_type: str
    size_bytes: int
    checksum_sha256: str
    is_public: bool = False
    created_at: Optional[datetime] = None


class GalaxyDetail(CamelModel):
    # id is None for the virtual orphan folder
    id: Optional[int] = None
    name: str
    virtual: bool = False
    created_at: Optional[datetime] = None
    planet_count: int
    image_count: int
    planets: List[PlanetRead]
    images: List[ImageRead]
