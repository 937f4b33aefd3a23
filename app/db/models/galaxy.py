from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base

# Name of the folder that holds items connected to no galaxy. It only
# exists in responses, never as a row.
ORPHANED_GALAXY_NAME = "Orphaned Planets"

galaxy_planets = Table(
    "galaxy_planets",
    Base.metadata,
    Column("galaxy_id", Integer, ForeignKey("galaxies.id", ondelete="CASCADE"), primary_key=True),
    Column("planet_id", Integer, ForeignKey("planets.id", ondelete="CASCADE"), primary_key=True),
)

galaxy_images = Table(
    "galaxy_images",
    Base.metadata,
    Column("galaxy_id", Integer, ForeignKey("galaxies.id", ondelete="CASCADE"), primary_key=True),
    Column("image_id", Integer, ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
)


class Galaxy(Base):
    __tablename__ = "galaxies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    shareable = Column(Boolean, nullable=False, server_default="false", default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    planets = relationship(
        "Planet", secondary=galaxy_planets, back_populates="galaxies", lazy="selectin"
    )
    images = relationship(
        "Image", secondary=galaxy_images, back_populates="galaxies", lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_galaxy_user_name"),
    )
