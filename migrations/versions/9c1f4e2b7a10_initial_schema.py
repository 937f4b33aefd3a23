"""initial schema

Revision ID: 9c1f4e2b7a10
Revises:
Create Date: 2026-10-19 10:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9c1f4e2b7a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("username", sa.String(50), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])

    op.create_table(
        "galaxies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("shareable", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "name", name="uq_galaxy_user_name"),
    )
    op.create_index("ix_galaxies_id", "galaxies", ["id"])
    op.create_index("ix_galaxies_user_id", "galaxies", ["user_id"])

    op.create_table(
        "planets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_planets_id", "planets", ["id"])
    op.create_index("ix_planets_user_id", "planets", ["user_id"])

    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bucket", sa.String(100), nullable=False),
        sa.Column("object_key", sa.String(512), nullable=False, unique=True),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("checksum_sha256", sa.String(64), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_images_id", "images", ["id"])
    op.create_index("ix_images_user_id", "images", ["user_id"])

    op.create_table(
        "galaxy_planets",
        sa.Column("galaxy_id", sa.Integer(), sa.ForeignKey("galaxies.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("planet_id", sa.Integer(), sa.ForeignKey("planets.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "galaxy_images",
        sa.Column("galaxy_id", sa.Integer(), sa.ForeignKey("galaxies.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "ai_categorizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("planet_id", sa.Integer(), sa.ForeignKey("planets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="SET NULL"), nullable=True),
        sa.Column("folder_id", sa.Integer(), sa.ForeignKey("galaxies.id", ondelete="SET NULL"), nullable=True),
        sa.Column("content_preview", sa.Text(), nullable=False),
        sa.Column("suggested_folder", sa.String(100), nullable=False),
        sa.Column("accepted_folder", sa.String(100), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("alternatives", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_categorizations_id", "ai_categorizations", ["id"])
    op.create_index("ix_ai_categorizations_user_id", "ai_categorizations", ["user_id"])


def downgrade():
    op.drop_table("ai_categorizations")
    op.drop_table("galaxy_images")
    op.drop_table("galaxy_planets")
    op.drop_table("images")
    op.drop_table("planets")
    op.drop_table("galaxies")
    op.drop_table("users")
