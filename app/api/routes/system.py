from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.models import User
from app.db.session import get_db
from app.schemas.system import SystemStats

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/stats", response_model=SystemStats)
async def get_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return system-wide statistics."""
    sql = text("""
        SELECT
            (SELECT COUNT(*) FROM users) AS users,
            (SELECT COUNT(*) FROM galaxies) AS galaxies,
            (SELECT COUNT(*) FROM planets) AS planets,
            (SELECT COUNT(*) FROM images) AS images,
            (SELECT COUNT(*) FROM ai_categorizations) AS categorizations
    """)
    result = await db.execute(sql)
    return result.mappings().first()
