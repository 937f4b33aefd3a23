"""
AI categorization audit trail.

Writing the audit row must never undo the note or image it describes, so
``record_categorization`` runs after the primary write has committed and
degrades through three inserts of decreasing fidelity:

1. a full typed ORM insert,
2. a typed insert with only the core fields,
3. a raw INSERT built from the columns the live table actually has, with
   placeholder values synthesized for required columns it does not know.

If all three fail the error is logged and swallowed.
"""
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import ARRAY, Boolean, DateTime, Numeric, Integer, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.services import UserCorrection
from app.db.models import AICategorization

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500
MAX_CORRECTIONS = 50


def normalize_preview(content: str) -> str:
    return re.sub(r"\s+", " ", content.strip())[:PREVIEW_CHARS]


@dataclass
class CategorizationRecord:
    """Plain values for one audit row, detached from any ORM instance."""

    user_id: int
    content_preview: str
    suggested_folder: str
    folder_id: Optional[int] = None
    planet_id: Optional[int] = None
    image_id: Optional[int] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    alternatives: List[str] = field(default_factory=list)

    def full_values(self) -> dict:
        return {
            "user_id": self.user_id,
            "planet_id": self.planet_id,
            "image_id": self.image_id,
            "folder_id": self.folder_id,
            "content_preview": self.content_preview,
            "suggested_folder": self.suggested_folder,
            "accepted_folder": self.suggested_folder,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "alternatives": list(self.alternatives),
        }

    def minimal_values(self) -> dict:
        return {
            "user_id": self.user_id,
            "folder_id": self.folder_id,
            "content_preview": self.content_preview,
            "suggested_folder": self.suggested_folder,
            "accepted_folder": self.suggested_folder,
        }


async def load_user_corrections(db: AsyncSession, user_id: int) -> List[UserCorrection]:
    """
    Recent rows where the user kept a different folder than the one
    suggested, newest first. Read failures yield no corrections.
    """
    try:
        result = await db.execute(
            select(
                AICategorization.content_preview,
                AICategorization.suggested_folder,
                AICategorization.accepted_folder,
            )
            .where(
                AICategorization.user_id == user_id,
                AICategorization.accepted_folder.isnot(None),
            )
            .order_by(AICategorization.created_at.desc(), AICategorization.id.desc())
            .limit(MAX_CORRECTIONS)
        )
        rows = result.all()
    except SQLAlchemyError as e:
        logger.warning(f"Could not load categorization corrections for user {user_id}: {e}")
        await db.rollback()
        return []

    return [
        UserCorrection(
            original_content=normalize_preview(preview),
            suggested_folder=suggested,
            accepted_folder=accepted,
        )
        for preview, suggested, accepted in rows
        if isinstance(preview, str)
        and isinstance(suggested, str)
        and isinstance(accepted, str)
        and accepted != suggested
    ]


async def _insert_full(db: AsyncSession, record: CategorizationRecord) -> Optional[int]:
    row = AICategorization(**record.full_values())
    db.add(row)
    await db.commit()
    return row.id


async def _insert_minimal(db: AsyncSession, record: CategorizationRecord) -> Optional[int]:
    row = AICategorization(**record.minimal_values())
    db.add(row)
    await db.commit()
    return row.id


def _placeholder_for(column_type) -> Optional[str]:
    """SQL literal for a required column we have no value for, or None to bind ''."""
    if isinstance(column_type, Boolean):
        return "false"
    if isinstance(column_type, (Integer, Numeric)):
        return "0"
    if isinstance(column_type, ARRAY):
        return "'{}'"
    if isinstance(column_type, DateTime):
        return "CURRENT_TIMESTAMP"
    return None


def _raw_insert(sync_session, record: CategorizationRecord) -> int:
    conn = sync_session.connection()
    table = AICategorization.__tablename__
    columns = inspect(conn).get_columns(table)
    quote = conn.dialect.identifier_preparer.quote

    names: List[str] = []
    placeholders: List[str] = []
    params: dict = {}

    def bind(name, value):
        names.append(quote(name))
        placeholders.append(f":{name}")
        params[name] = value

    def literal(name, sql):
        names.append(quote(name))
        placeholders.append(sql)

    values = record.full_values()
    for col in columns:
        name = col["name"]
        if name == "id":
            if isinstance(col["type"], Integer):
                continue  # generated by the database
            bind(name, str(uuid.uuid4()))
            continue
        if name == "alternatives" and name in values:
            if isinstance(col["type"], ARRAY):
                bind(name, values[name])
            else:
                bind(name, json.dumps(values[name]))
        elif name in values and values[name] is not None:
            bind(name, values[name])
        elif name == "created_at":
            literal(name, "CURRENT_TIMESTAMP")
        elif col.get("nullable", True) or col.get("default") is not None:
            continue
        else:
            sql = _placeholder_for(col["type"])
            if sql is None:
                bind(name, "")
            else:
                literal(name, sql)

    stmt = text(
        f"INSERT INTO {quote(table)} ({', '.join(names)}) VALUES ({', '.join(placeholders)})"
    )
    result = sync_session.execute(stmt, params)
    logger.warning(
        f"AICategorization inserted via raw SQL; columns={','.join(names)} "
        f"affected rows={result.rowcount}"
    )
    return result.rowcount


async def record_categorization(db: AsyncSession, record: CategorizationRecord) -> tuple[bool, Optional[int]]:
    """
    Persist the audit row. Returns ``(saved, review_id)``; ``review_id`` is
    None when only the raw insert succeeded.
    """
    try:
        review_id = await _insert_full(db, record)
        logger.info(f"AICategorization {review_id} created")
        return True, review_id
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Full AICategorization insert failed, trying minimal fields: {e}")

    try:
        review_id = await _insert_minimal(db, record)
        logger.warning(f"AICategorization {review_id} created with minimal fields")
        return True, review_id
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Minimal AICategorization insert failed, trying raw SQL: {e}")

    try:
        affected = await db.run_sync(_raw_insert, record)
        await db.commit()
        return affected > 0, None
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Failed to persist AICategorization (all attempts): {e}")
        return False, None
