from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.galaxy import GalaxyRead


class PlanetCreate(CamelModel):
    content: str = Field(min_length=1, max_length=50_000)
    galaxy_id: Optional[int] = None
    galaxy_name: Optional[str] = Field(default=None, max_length=100)


class PlanetUpdate(CamelModel):
    content: str = Field(min_length=1, max_length=50_000)


class PlanetBulkDelete(CamelModel):
    content: str


class MoveRequest(CamelModel):
    """Target folder by id or by name; neither, or the orphan folder name, orphans the item."""

    galaxy_id: Optional[int] = None
    galaxy_name: Optional[str] = Field(default=None, max_length=100)


class PlanetWithGalaxy(CamelModel):
    id: int
    content: str
    galaxy: Optional[GalaxyRead] = None


class MoveResult(CamelModel):
    id: int
    galaxy: Optional[GalaxyRead] = None
    removed_galaxy_ids: List[int] = []


class DeleteResult(CamelModel):
    deleted: int
    removed_galaxy_ids: List[int] = []
