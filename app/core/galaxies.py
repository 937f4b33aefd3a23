"""
Galaxy (folder) bookkeeping shared by the dashboard, playground and AI
pipeline routes.

A planet or image is filed in at most one galaxy. Every operation that can
take the last item out of a galaxy garbage-collects that galaxy before it
commits. The virtual "Orphaned Planets" folder is never a row: items with
no galaxy show up there.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    GalaxyNameConflictError,
    InvalidGalaxyNameError,
    ReservedGalaxyNameError,
)
from app.db.models import (
    AICategorization,
    Galaxy,
    Image,
    Planet,
    ORPHANED_GALAXY_NAME,
    galaxy_images,
    galaxy_planets,
)

logger = logging.getLogger(__name__)

MAX_GALAXY_NAME = 100


def clean_galaxy_name(name: str) -> str:
    cleaned = (name or "").strip()[:MAX_GALAXY_NAME].strip()
    if not cleaned:
        raise InvalidGalaxyNameError("Galaxy name must not be empty")
    if cleaned.lower() == ORPHANED_GALAXY_NAME.lower():
        raise ReservedGalaxyNameError(f'"{ORPHANED_GALAXY_NAME}" is reserved')
    return cleaned


async def find_galaxy(db: AsyncSession, user_id: int, name: str) -> Optional[Galaxy]:
    result = await db.execute(
        select(Galaxy).where(Galaxy.user_id == user_id, Galaxy.name == name)
    )
    return result.scalar_one_or_none()


async def get_user_galaxy(db: AsyncSession, user_id: int, galaxy_id: int) -> Optional[Galaxy]:
    result = await db.execute(
        select(Galaxy).where(Galaxy.id == galaxy_id, Galaxy.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def ensure_galaxy(db: AsyncSession, user_id: int, name: str, commit: bool = True) -> Galaxy:
    """
    Find-or-create a galaxy by exact name for this user.

    Two requests racing on the same name both try the insert; the loser hits
    the (user_id, name) unique constraint, rolls back and reads the winner's
    row. With ``commit=False`` the insert only runs inside a savepoint, and
    the caller's own commit makes it durable together with the rest of its
    work.
    """
    name = clean_galaxy_name(name)
    galaxy = await find_galaxy(db, user_id, name)
    if galaxy:
        return galaxy

    galaxy = Galaxy(user_id=user_id, name=name, shareable=False)
    if not commit:
        try:
            async with db.begin_nested():
                db.add(galaxy)
        except IntegrityError:
            logger.info(f"Galaxy '{name}' for user {user_id} created concurrently, re-reading")
            galaxy = await find_galaxy(db, user_id, name)
            if galaxy is None:
                raise
            return galaxy
        await db.refresh(galaxy)
        return galaxy

    db.add(galaxy)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Galaxy '{name}' for user {user_id} created concurrently, re-reading")
        galaxy = await find_galaxy(db, user_id, name)
        if galaxy is None:
            raise
        return galaxy

    await db.refresh(galaxy)
    logger.info(f"Created galaxy {galaxy.id} '{name}' for user {user_id}")
    return galaxy


async def list_galaxy_names(db: AsyncSession, user_id: int, limit: int = 100) -> List[str]:
    result = await db.execute(
        select(Galaxy.name).where(Galaxy.user_id == user_id).limit(limit)
    )
    return list(result.scalars().all())


async def delete_empty_galaxies(db: AsyncSession, galaxy_ids: Iterable[int]) -> List[int]:
    """Delete the given galaxies that hold no planets and no images."""
    ids = set(galaxy_ids)
    if not ids:
        return []

    await db.flush()
    result = await db.execute(
        select(Galaxy.id).where(
            Galaxy.id.in_(ids),
            ~exists().where(galaxy_planets.c.galaxy_id == Galaxy.id),
            ~exists().where(galaxy_images.c.galaxy_id == Galaxy.id),
        )
    )
    empty = list(result.scalars().all())
    if empty:
        await db.execute(
            update(AICategorization)
            .where(AICategorization.folder_id.in_(empty))
            .values(folder_id=None)
        )
        await db.execute(delete(Galaxy).where(Galaxy.id.in_(empty)))
        logger.info(f"Removed empty galaxies {empty}")
    return empty


async def _record_accepted_folder(db: AsyncSession, criterion, target: Optional[Galaxy]) -> None:
    # Orphaning an item is not a folder choice, so it is not fed back as one.
    if target is None:
        return
    await db.execute(
        update(AICategorization)
        .where(criterion)
        .values(accepted_folder=target.name)
    )


async def move_planet(db: AsyncSession, planet: Planet, target: Optional[Galaxy]) -> List[int]:
    """
    Refile a planet into ``target`` (None means orphaned) in one transaction.
    Returns the ids of galaxies removed because the move emptied them.
    """
    previous = {g.id for g in planet.galaxies}
    planet.galaxies = [target] if target is not None else []
    await _record_accepted_folder(db, AICategorization.planet_id == planet.id, target)
    if target is not None:
        previous.discard(target.id)
    removed = await delete_empty_galaxies(db, previous)
    await db.commit()
    return removed


async def move_image(db: AsyncSession, image: Image, target: Optional[Galaxy]) -> List[int]:
    previous = {g.id for g in image.galaxies}
    image.galaxies = [target] if target is not None else []
    await _record_accepted_folder(db, AICategorization.image_id == image.id, target)
    if target is not None:
        previous.discard(target.id)
    removed = await delete_empty_galaxies(db, previous)
    await db.commit()
    return removed


async def delete_planets(db: AsyncSession, planets: List[Planet]) -> List[int]:
    """Delete planets, detach their audit rows, and collect emptied galaxies."""
    if not planets:
        return []
    previous = {g.id for p in planets for g in p.galaxies}
    ids = [p.id for p in planets]
    await db.execute(
        update(AICategorization)
        .where(AICategorization.planet_id.in_(ids))
        .values(planet_id=None)
    )
    for planet in planets:
        await db.delete(planet)
    removed = await delete_empty_galaxies(db, previous)
    await db.commit()
    return removed


async def delete_image(db: AsyncSession, image: Image) -> List[int]:
    previous = {g.id for g in image.galaxies}
    await db.execute(
        update(AICategorization)
        .where(AICategorization.image_id == image.id)
        .values(image_id=None)
    )
    await db.delete(image)
    removed = await delete_empty_galaxies(db, previous)
    await db.commit()
    return removed


async def rename_galaxy(db: AsyncSession, galaxy: Galaxy, new_name: str) -> Galaxy:
    new_name = clean_galaxy_name(new_name)
    if new_name == galaxy.name:
        return galaxy

    clash = await find_galaxy(db, galaxy.user_id, new_name)
    if clash is not None:
        raise GalaxyNameConflictError(f'A galaxy named "{new_name}" already exists')

    galaxy_id = galaxy.id
    galaxy.name = new_name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise GalaxyNameConflictError(f'A galaxy named "{new_name}" already exists')
    logger.info(f"Renamed galaxy {galaxy_id} to '{new_name}'")
    return galaxy


async def delete_galaxy(db: AsyncSession, galaxy: Galaxy) -> None:
    """Delete a galaxy; its planets and images stay, as orphans."""
    await db.execute(
        update(AICategorization)
        .where(AICategorization.folder_id == galaxy.id)
        .values(folder_id=None)
    )
    await db.execute(delete(galaxy_planets).where(galaxy_planets.c.galaxy_id == galaxy.id))
    await db.execute(delete(galaxy_images).where(galaxy_images.c.galaxy_id == galaxy.id))
    await db.execute(delete(Galaxy).where(Galaxy.id == galaxy.id))
    await db.commit()


async def create_planet(
    db: AsyncSession, user_id: int, content: str, galaxy: Optional[Galaxy] = None
) -> Planet:
    planet = Planet(
        user_id=user_id,
        content=content,
        galaxies=[galaxy] if galaxy is not None else [],
    )
    db.add(planet)
    await db.commit()
    await db.refresh(planet)
    return planet
