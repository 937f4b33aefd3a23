from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_access_token
from app.db.models import User
from app.db.session import get_db


def get_token_from_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Resolve the session cookie to a user, or fail with 401."""
    token = get_token_from_cookie(request)
    user_id = decode_access_token(token) if token else None
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated. Please sign in.")

    # The cookie can outlive the user row, e.g. after a database reset.
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Session invalid. Please sign in again.")
    return user
