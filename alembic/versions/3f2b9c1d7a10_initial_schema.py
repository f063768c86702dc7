"""initial_schema

Revision ID: 3f2b9c1d7a10
Revises:
Create Date: 2026-10-19 09:12:41.118204

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2b9c1d7a10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching SQLModel's default mapping
job_status = postgresql.ENUM("PENDING", "COMPLETE", "FAILED", name="jobstatus", create_type=False)
model_type = postgresql.ENUM("MAN", "WOMAN", "OTHERS", name="modeltype", create_type=False)
ethnicity = postgresql.ENUM(
    "WHITE",
    "BLACK",
    "ASIAN_AMERICAN",
    "EAST_ASIAN",
    "SOUTH_EAST_ASIAN",
    "SOUTH_ASIAN",
    "MIDDLE_EASTERN",
    "PACIFIC",
    "HISPANIC",
    name="ethnicity",
    create_type=False,
)
eye_color = postgresql.ENUM("BROWN", "BLUE", "HAZEL", "GRAY", name="eyecolor", create_type=False)
credit_reason = postgresql.ENUM(
    "IMAGE_GENERATION",
    "PACK_GENERATION",
    "TOP_UP",
    "REFUND",
    "ADMIN_ADJUSTMENT",
    name="creditreason",
    create_type=False,
)

ENUMS = (job_status, model_type, ethnicity, eye_color, credit_reason)


def upgrade() -> None:
    """Create models, packs, pack_prompts, output_images and the credit ledger."""
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "models",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", model_type, nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("ethnicity", ethnicity, nullable=False),
        sa.Column("eye_color", eye_color, nullable=False),
        sa.Column("bald", sa.Boolean(), nullable=False),
        sa.Column("zip_url", sa.String(), nullable=False),
        sa.Column("provider_request_id", sa.String(length=255), nullable=False),
        sa.Column("tensor_path", sa.String(), nullable=True),
        sa.Column("training_status", job_status, nullable=False),
        sa.Column("failure_reason", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_models_user_id", "models", ["user_id"])
    op.create_index(
        "ix_models_provider_request_id", "models", ["provider_request_id"], unique=True
    )
    op.create_index("ix_models_training_status", "models", ["training_status"])
    op.create_index("ix_models_created_at", "models", ["created_at"])

    op.create_table(
        "packs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("image_url1", sa.String(), nullable=True),
        sa.Column("image_url2", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "pack_prompts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pack_id", sa.Uuid(), nullable=False),
        sa.Column("prompt", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pack_prompts_pack_id", "pack_prompts", ["pack_id"])

    op.create_table(
        "output_images",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("model_id", sa.Uuid(), nullable=False),
        sa.Column("pack_id", sa.Uuid(), nullable=True),
        sa.Column("prompt", sa.String(), nullable=False),
        sa.Column("provider_request_id", sa.String(length=255), nullable=False),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("status", job_status, nullable=False),
        sa.Column("failure_reason", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["model_id"], ["models.id"]),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_output_images_user_id", "output_images", ["user_id"])
    op.create_index("ix_output_images_model_id", "output_images", ["model_id"])
    op.create_index(
        "ix_output_images_provider_request_id",
        "output_images",
        ["provider_request_id"],
        unique=True,
    )
    op.create_index("ix_output_images_status", "output_images", ["status"])
    op.create_index("ix_output_images_created_at", "output_images", ["created_at"])

    op.create_table(
        "user_credits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_user_credits_amount_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_credits_user_id", "user_credits", ["user_id"], unique=True)

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", credit_reason, nullable=False),
        sa.Column("reference", sa.String(length=1000), nullable=True),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("credit_transactions")
    op.drop_table("user_credits")
    op.drop_table("output_images")
    op.drop_table("pack_prompts")
    op.drop_table("packs")
    op.drop_table("models")

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
