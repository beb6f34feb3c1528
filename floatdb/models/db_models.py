"""
Database ORM models

Tables:
  items    — one row per physical skin, unique on (defindex, paintindex, paintwear, paintseed)
             and on floatid; overwritten in place by the bulk upsert
  history  — append-only audit trail written whenever an observation carries an
             owner steamid or a price

All 64-bit Steam ids (a / d / ms / floatid / steamid) are stored in their signed
two's-complement form because SQL BIGINT is signed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from floatdb.core.database import Base


class SkinItem(Base):
    """Canonical stored skin (see codec.normalize for how rows are built)"""

    __tablename__ = "items"
    __table_args__ = (
        UniqueConstraint("defindex", "paintindex", "paintwear", "paintseed", name="uq_item_identity"),
        # Covers the peer counts in rank.get_item_rank
        Index("ix_items_rank", "defindex", "paintindex", "stattrak", "souvenir", "paintwear"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    defindex: Mapped[int] = mapped_column(Integer, nullable=False)
    paintindex: Mapped[int] = mapped_column(Integer, nullable=False)
    paintwear: Mapped[int] = mapped_column(Integer, index=True, nullable=False)  # float32 bits as int32
    paintseed: Mapped[int] = mapped_column(Integer, nullable=False)

    floatid: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    a: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    d: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    ms: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)  # owner steamid or market id

    stattrak: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    souvenir: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # {"origin": .., "quality": .., "rarity": ..}
    props: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    # NULL means "no stickers", never an empty list
    stickers: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)

    updated: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    listed_price: Mapped[Optional[float]] = mapped_column(Float, index=True, nullable=True)

    # Descriptive fields passed through from the inspect feed
    inventory: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    imageurl: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    weapon_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    item_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    rarity_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    quality_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    origin_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    wear_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    full_item_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class HistoryEntry(Base):
    """Append-only audit row; never updated or deleted by the pipeline"""

    __tablename__ = "history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    floatid: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    a: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    steamid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
