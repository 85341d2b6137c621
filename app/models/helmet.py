"""Catalog model: one distinct helmet product/variant tracked for pricing."""

import re
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _key_part(value) -> str:
    return re.sub(r"\s+", " ", value or "").strip().lower()


def make_natural_key(player, team, helmet_type, design_type) -> str:
    """Lowercased player|team|type|design, the catalog idempotency key.

    Whitespace runs collapse to one space, as in ``ebay_search_query``.
    """
    parts = [player, team, helmet_type, design_type or "regular"]
    return "|".join(_key_part(p) for p in parts)


class Helmet(Base):
    """A signed helmet variant (player, team, physical type, cosmetic design)."""

    __tablename__ = "helmets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    player: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # mini / midi / fullsize-authentic / fullsize-replica / fullsize-speedflex
    helmet_type: Mapped[str] = mapped_column(String(50), nullable=False)
    design_type: Mapped[str] = mapped_column(String(50), default="regular", nullable=False)
    auth_company: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    ebay_search_query: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    natural_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    prices: Mapped[list["HelmetPrice"]] = relationship(
        "HelmetPrice",
        back_populates="helmet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Helmet(id={self.id}, player='{self.player}', team='{self.team}', type='{self.helmet_type}')>"
