from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, JSON, func
from app.db.base import Base

class AICategorization(Base):
    """Model folder suggestion for a note or image, plus the folder the user kept."""

    __tablename__ = "ai_categorizations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    planet_id = Column(Integer, ForeignKey("planets.id", ondelete="SET NULL"), nullable=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="SET NULL"), nullable=True)
    folder_id = Column(Integer, ForeignKey("galaxies.id", ondelete="SET NULL"), nullable=True)
    content_preview = Column(Text, nullable=False)
    suggested_folder = Column(String(100), nullable=False)
    accepted_folder = Column(String(100), nullable=True)
    confidence = Column(Float, nullable=True)
    reasoning = Column(Text, nullable=True)
    alternatives = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
