from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.db.models.galaxy import galaxy_images

class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    bucket = Column(String(100), nullable=False)
    object_key = Column(String(512), nullable=False, unique=True)
    content_type = Column(String(50), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    checksum_sha256 = Column(String(64), nullable=False)
    is_public = Column(Boolean, nullable=False, server_default="false", default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    galaxies = relationship(
        "Galaxy", secondary=galaxy_images, back_populates="images", lazy="selectin"
    )
