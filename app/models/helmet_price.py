"""Source-specific price snapshot for a catalog helmet."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class HelmetPrice(Base):
    """One price observation per (helmet, source); re-imports overwrite it."""

    __tablename__ = "helmet_prices"
    __table_args__ = (
        UniqueConstraint("helmet_id", "source", name="uq_helmet_prices_helmet_source"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    helmet_id: Mapped[int] = mapped_column(
        ForeignKey("helmets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(50), default="ebay", nullable=False, index=True)

    median_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    total_results: Mapped[int] = mapped_column(nullable=False, default=1)
    ebay_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    helmet: Mapped["Helmet"] = relationship("Helmet", back_populates="prices")

    def __repr__(self) -> str:
        return f"<HelmetPrice(id={self.id}, helmet_id={self.helmet_id}, source='{self.source}', median={self.median_price})>"
