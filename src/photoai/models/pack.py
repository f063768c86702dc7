"""Pack and PackPrompt entities - preconfigured prompt bundles (reference data)."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from photoai.core.timezone import utc_now


class Pack(SQLModel, table=True):
    """Pack is a named bundle of prompt templates."""

    __tablename__ = "packs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    description: str = Field(default="")
    image_url1: Optional[str] = Field(default=None)
    image_url2: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class PackPrompt(SQLModel, table=True):
    """PackPrompt is one prompt of a pack; one image is generated per prompt."""

    __tablename__ = "pack_prompts"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    pack_id: UUID = Field(foreign_key="packs.id", index=True)
    prompt: str
