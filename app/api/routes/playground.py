import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.api.deps import get_current_user
from app.core.errors import StorageNotConfiguredError
from app.core.galaxies import create_planet, ensure_galaxy
from app.core.images import DecodedImage, decode_image, store_image, validate_image
from app.core.storage import ObjectStorage, get_storage
from app.db.models import User
from app.db.session import get_db
from app.schemas.galaxy import GalaxyRead
from app.schemas.planet import PlanetWithGalaxy
from app.schemas.playground import (
    GalaxyCheckRequest,
    ImageUploadRequest,
    ImageUploadResponse,
    PlanetCreateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/playground", tags=["playground"])


@router.post("/galaxyCheck", response_model=GalaxyRead)
async def galaxy_check(
    data: GalaxyCheckRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Find-or-create one of the caller's galaxies by name."""
    return await ensure_galaxy(db, user.id, data.galaxy)


@router.post("/planetCreate", response_model=PlanetWithGalaxy, status_code=status.HTTP_201_CREATED)
async def planet_create(
    data: PlanetCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = user.id
    galaxy = await ensure_galaxy(db, user_id, data.galaxy)
    planet = await create_planet(db, user_id, data.planet.strip(), galaxy)
    return {"id": planet.id, "content": planet.content, "galaxy": galaxy}


async def _read_upload(request: Request) -> tuple[str, DecodedImage]:
    """Accept either multipart ``file`` + ``galaxy`` or a JSON ``{img, galaxy}`` body."""
    if "multipart/form-data" in request.headers.get("content-type", ""):
        form = await request.form()
        file = form.get("file")
        galaxy = str(form.get("galaxy") or "").strip()
        if not isinstance(file, UploadFile):
            raise HTTPException(status_code=400, detail="No file")
        if not galaxy:
            raise HTTPException(status_code=400, detail="Missing galaxy")
        return galaxy, DecodedImage(await file.read(), file.content_type or "")

    try:
        data = ImageUploadRequest.model_validate(await request.json())
    except ValueError as e:
        # pydantic's ValidationError and JSON decode errors are both ValueErrors
        errors = e.errors() if isinstance(e, ValidationError) else [
            {"loc": ("body",), "msg": str(e), "type": "json_invalid"}
        ]
        raise RequestValidationError(errors)
    galaxy = data.galaxy.strip()
    if not galaxy:
        raise HTTPException(status_code=400, detail="Missing galaxy")
    return galaxy, await decode_image(data.img.model_dump(by_alias=True))


@router.post("/imgStorage", response_model=ImageUploadResponse)
async def img_storage(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Upload an image into a named galaxy of the caller."""
    if not storage.configured:
        raise StorageNotConfiguredError()
    user_id = user.id

    galaxy_name, image = await _read_upload(request)
    image = validate_image(image)

    galaxy = await ensure_galaxy(db, user_id, galaxy_name)
    galaxy_id = galaxy.id
    row = await store_image(db, storage, user_id, image, galaxy)
    logger.info(f"Stored image {row.id} ({image.size} bytes) in galaxy {galaxy_id}")

    return {
        "id": row.id,
        "bucket": row.bucket,
        "object_key": row.object_key,
        "content_type": row.content_type,
        "size_bytes": row.size_bytes,
        "checksum_sha256": row.checksum_sha256,
        "galaxy_id": galaxy_id,
        "signed_url": await storage.create_signed_url(row.bucket, row.object_key),
    }
