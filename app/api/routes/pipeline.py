import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.audit import CategorizationRecord, load_user_corrections, normalize_preview, record_categorization
from app.core.errors import (
    CategorizationError,
    InvalidGalaxyNameError,
    PocketUniverseError,
    StorageNotConfiguredError,
)
from app.core.galaxies import create_planet, delete_empty_galaxies, ensure_galaxy, list_galaxy_names
from app.core.images import decode_image, store_image, validate_image
from app.core.services import ContentAnalysis, categorize_content
from app.core.storage import ObjectStorage, get_storage
from app.db.models import User
from app.db.session import get_db
from app.schemas.pipeline import PipelineRequest, PipelineResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

MAX_CONTENT_CHARS = 4000


@router.post("/pipeline", response_model=PipelineResponse)
async def run_pipeline(
    body: PipelineRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Categorize a note or image with the model and file it into a galaxy."""
    user_id = user.id
    try:
        if body.content is not None:
            return await _categorize_text(db, user_id, body.content)
        return await _categorize_image(db, storage, user_id, body.img.model_dump(by_alias=True))
    except (HTTPException, PocketUniverseError):
        raise
    except SQLAlchemyError as e:
        logger.error(f"AI categorization failed for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to categorize content")


async def _build_analysis(db: AsyncSession, user_id: int, **kwargs) -> ContentAnalysis:
    return ContentAnalysis(
        existing_folders=await list_galaxy_names(db, user_id),
        user_corrections=await load_user_corrections(db, user_id),
        **kwargs,
    )


async def _ensure_suggested_galaxy(db: AsyncSession, user_id: int, name: str):
    try:
        return await ensure_galaxy(db, user_id, name)
    except InvalidGalaxyNameError as e:
        raise CategorizationError(f"Model suggested an unusable folder name: {e.message}")


async def _categorize_text(db: AsyncSession, user_id: int, raw_content: str) -> dict:
    content = raw_content.strip()[:MAX_CONTENT_CHARS]
    analysis = await _build_analysis(db, user_id, content=content)

    result = await categorize_content(analysis)
    logger.info(
        f"Suggested '{result.suggested_folder}' ({result.confidence:.2f}) for user {user_id}"
    )

    galaxy = await _ensure_suggested_galaxy(db, user_id, result.suggested_folder)
    folder_id, folder_name = galaxy.id, galaxy.name
    planet = await create_planet(db, user_id, content, galaxy)
    planet_id = planet.id

    saved, review_id = await record_categorization(
        db,
        CategorizationRecord(
            user_id=user_id,
            planet_id=planet_id,
            folder_id=folder_id,
            content_preview=normalize_preview(content),
            suggested_folder=result.suggested_folder,
            confidence=result.confidence,
            reasoning=result.reasoning,
            alternatives=result.alternatives,
        ),
    )

    return {
        "folder_id": folder_id,
        "folder_name": folder_name,
        "planet_id": planet_id,
        "review_id": review_id,
        "suggested_folder": result.suggested_folder,
        "confidence": result.confidence,
        "reasoning": result.reasoning,
        "alternatives": result.alternatives,
        "ai_categorization_saved": saved,
    }


async def _categorize_image(db: AsyncSession, storage: ObjectStorage, user_id: int, payload: dict) -> dict:
    if not storage.configured:
        raise StorageNotConfiguredError()

    image = validate_image(await decode_image(payload))
    analysis = await _build_analysis(db, user_id, image_data_url=image.data_url())

    result = await categorize_content(analysis)
    logger.info(
        f"Suggested '{result.suggested_folder}' ({result.confidence:.2f}) for image of user {user_id}"
    )

    galaxy = await _ensure_suggested_galaxy(db, user_id, result.suggested_folder)
    folder_id, folder_name = galaxy.id, galaxy.name
    try:
        row = await store_image(db, storage, user_id, image, galaxy)
    except Exception:
        # Do not leave a freshly created folder behind with nothing in it.
        await delete_empty_galaxies(db, [folder_id])
        await db.commit()
        raise
    image_id, bucket, object_key = row.id, row.bucket, row.object_key

    saved, review_id = await record_categorization(
        db,
        CategorizationRecord(
            user_id=user_id,
            image_id=image_id,
            folder_id=folder_id,
            content_preview=f"[image] {object_key}",
            suggested_folder=result.suggested_folder,
            confidence=result.confidence,
            reasoning=result.reasoning,
            alternatives=result.alternatives,
        ),
    )

    return {
        "folder_id": folder_id,
        "folder_name": folder_name,
        "image_id": image_id,
        "review_id": review_id,
        "suggested_folder": result.suggested_folder,
        "confidence": result.confidence,
        "reasoning": result.reasoning,
        "alternatives": result.alternatives,
        "ai_categorization_saved": saved,
        "signed_url": await storage.create_signed_url(bucket, object_key),
    }
