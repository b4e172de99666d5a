from sqlalchemy import Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, JsonType, TimestampMixin


class Listing(TimestampMixin, Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_added_by_id", "added_by_id"),
        Index("ix_listings_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    # {"latitude": .., "longitude": ..} or NULL
    location: Mapped[dict | None] = mapped_column(JsonType, nullable=True)

    # [{"file_name": ..}, ...] in submission order
    images: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)

    # Point-in-time copies of the category / seller, never refreshed
    category: Mapped[dict] = mapped_column(JsonType, nullable=False)
    added_by: Mapped[dict] = mapped_column(JsonType, nullable=False)

    # Copy of added_by["id"] so the per-seller count is an indexed lookup
    added_by_id: Mapped[str] = mapped_column(String, nullable=False)
