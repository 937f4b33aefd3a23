import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.errors import StorageError
from app.core.galaxies import (
    create_planet,
    delete_galaxy,
    delete_image,
    delete_planets,
    ensure_galaxy,
    get_user_galaxy,
    move_image,
    move_planet,
    rename_galaxy,
)
from app.core.storage import ObjectStorage, get_storage
from app.db.models import Galaxy, Image, Planet, User, ORPHANED_GALAXY_NAME
from app.db.session import get_db
from app.schemas.galaxy import GalaxyCreate, GalaxyDetail, GalaxyRead, GalaxyRename
from app.schemas.planet import (
    DeleteResult,
    MoveRequest,
    MoveResult,
    PlanetBulkDelete,
    PlanetCreate,
    PlanetUpdate,
    PlanetWithGalaxy,
)
from app.schemas.playground import SignedUrlResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _newest_first(rows):
    return sorted(rows, key=lambda r: (r.created_at is not None, r.created_at, r.id), reverse=True)


def _folder(galaxy: Optional[Galaxy], planets, images) -> dict:
    return {
        "id": galaxy.id if galaxy else None,
        "name": galaxy.name if galaxy else ORPHANED_GALAXY_NAME,
        "virtual": galaxy is None,
        "created_at": galaxy.created_at if galaxy else None,
        "planet_count": len(planets),
        "image_count": len(images),
        "planets": _newest_first(planets),
        "images": _newest_first(images),
    }


async def _get_planet(db: AsyncSession, user_id: int, planet_id: int) -> Planet:
    result = await db.execute(
        select(Planet).where(Planet.id == planet_id, Planet.user_id == user_id)
    )
    planet = result.scalar_one_or_none()
    if not planet:
        raise HTTPException(status_code=404, detail="Planet not found")
    return planet


async def _get_image(db: AsyncSession, user_id: int, image_id: int) -> Image:
    result = await db.execute(
        select(Image).where(Image.id == image_id, Image.user_id == user_id)
    )
    image = result.scalar_one_or_none()
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


async def _get_galaxy(db: AsyncSession, user_id: int, galaxy_id: int) -> Galaxy:
    galaxy = await get_user_galaxy(db, user_id, galaxy_id)
    if not galaxy:
        raise HTTPException(status_code=404, detail="Galaxy not found")
    return galaxy


async def _resolve_target(db: AsyncSession, user_id: int, data: MoveRequest) -> Optional[Galaxy]:
    """Galaxy to file into, or None for the orphan folder. A new galaxy is left uncommitted."""
    if data.galaxy_id is not None:
        return await _get_galaxy(db, user_id, data.galaxy_id)
    name = (data.galaxy_name or "").strip()
    if not name or name.lower() == ORPHANED_GALAXY_NAME.lower():
        return None
    return await ensure_galaxy(db, user_id, name, commit=False)


@router.get("", response_model=List[GalaxyDetail])
async def get_dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All galaxies with their planets and images, newest first, plus the orphan folder."""
    user_id = user.id
    result = await db.execute(
        select(Galaxy)
        .where(Galaxy.user_id == user_id)
        .order_by(Galaxy.created_at.desc(), Galaxy.id.desc())
    )
    galaxies = result.scalars().all()

    orphan_planets = await db.execute(
        select(Planet).where(Planet.user_id == user_id, ~Planet.galaxies.any())
    )
    orphan_images = await db.execute(
        select(Image).where(Image.user_id == user_id, ~Image.galaxies.any())
    )

    folders = [_folder(g, g.planets, g.images) for g in galaxies]
    folders.append(
        _folder(None, orphan_planets.scalars().all(), orphan_images.scalars().all())
    )
    return folders


@router.delete("", response_model=DeleteResult)
async def delete_planets_by_content(
    data: PlanetBulkDelete,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete every planet of the user whose content matches exactly."""
    result = await db.execute(
        select(Planet).where(Planet.user_id == user.id, Planet.content == data.content)
    )
    planets = list(result.scalars().all())
    removed = await delete_planets(db, planets)
    return {"deleted": len(planets), "removed_galaxy_ids": removed}


# --- Galaxies --- #


@router.get("/galaxies", response_model=List[GalaxyRead])
async def list_galaxies(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Galaxy)
        .where(Galaxy.user_id == user.id)
        .order_by(Galaxy.created_at.desc(), Galaxy.id.desc())
    )
    return result.scalars().all()


@router.post("/galaxies", response_model=GalaxyRead)
async def create_galaxy(
    data: GalaxyCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ensure_galaxy(db, user.id, data.name)


@router.put("/galaxies/{galaxy_id}", response_model=GalaxyRead)
async def update_galaxy(
    galaxy_id: int,
    data: GalaxyRename,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    galaxy = await _get_galaxy(db, user.id, galaxy_id)
    return await rename_galaxy(db, galaxy, data.name)


@router.delete("/galaxies/{galaxy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_galaxy(
    galaxy_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    galaxy = await _get_galaxy(db, user.id, galaxy_id)
    await delete_galaxy(db, galaxy)
    logger.info(f"Deleted galaxy {galaxy_id}")


# --- Planets --- #


@router.post("/planets", response_model=PlanetWithGalaxy, status_code=status.HTTP_201_CREATED)
async def add_planet(
    data: PlanetCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = user.id
    galaxy = await _resolve_target(
        db, user_id, MoveRequest(galaxy_id=data.galaxy_id, galaxy_name=data.galaxy_name)
    )
    planet = await create_planet(db, user_id, data.content.strip(), galaxy)
    return {"id": planet.id, "content": planet.content, "galaxy": galaxy}


@router.put("/planets/{planet_id}", response_model=PlanetWithGalaxy)
async def edit_planet(
    planet_id: int,
    data: PlanetUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    planet = await _get_planet(db, user.id, planet_id)
    planet.content = data.content.strip()
    await db.commit()
    return {
        "id": planet.id,
        "content": planet.content,
        "galaxy": planet.galaxies[0] if planet.galaxies else None,
    }


@router.put("/planets/{planet_id}/galaxy", response_model=MoveResult)
async def move_planet_to_galaxy(
    planet_id: int,
    data: MoveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = user.id
    planet = await _get_planet(db, user_id, planet_id)
    target = await _resolve_target(db, user_id, data)
    removed = await move_planet(db, planet, target)
    return {"id": planet_id, "galaxy": target, "removed_galaxy_ids": removed}


@router.delete("/planets/{planet_id}", response_model=DeleteResult)
async def remove_planet(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    planet = await _get_planet(db, user.id, planet_id)
    removed = await delete_planets(db, [planet])
    return {"deleted": 1, "removed_galaxy_ids": removed}


# --- Images --- #


@router.get("/images/{image_id}/url", response_model=SignedUrlResponse)
async def get_image_url(
    image_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    image = await _get_image(db, user.id, image_id)
    return {
        "id": image.id,
        "signed_url": await storage.create_signed_url(image.bucket, image.object_key),
    }


@router.put("/images/{image_id}/galaxy", response_model=MoveResult)
async def move_image_to_galaxy(
    image_id: int,
    data: MoveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = user.id
    image = await _get_image(db, user_id, image_id)
    target = await _resolve_target(db, user_id, data)
    removed = await move_image(db, image, target)
    return {"id": image_id, "galaxy": target, "removed_galaxy_ids": removed}


@router.delete("/images/{image_id}", response_model=DeleteResult)
async def remove_image(
    image_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    image = await _get_image(db, user.id, image_id)
    bucket, object_key = image.bucket, image.object_key
    removed = await delete_image(db, image)

    try:
        await storage.remove(bucket, object_key)
    except StorageError as e:
        logger.warning(f"Image {image_id} deleted but blob {bucket}/{object_key} was not: {e}")

    return {"deleted": 1, "removed_galaxy_ids": removed}
