"""Pydantic models for inspect-feed observations, stored items and API output"""

from __future__ import annotations

import struct
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _id_str(v):
    # Inspect feeds hand out 64-bit ids either as JSON numbers or strings
    if v is None:
        return "0"
    s = str(v).strip()
    if not s.isdigit() or int(s) >= 1 << 64:
        raise ValueError(f"not an unsigned 64-bit id: {v!r}")
    return str(int(s))


# ---------- inspect feed (input) ----------

class RawSticker(BaseModel):
    slot: int
    sticker_id: int = Field(alias="stickerId")
    wear: Optional[float] = None
    rotation: Optional[float] = None
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None
    codename: Optional[str] = None
    material: Optional[str] = None
    name: Optional[str] = None
    dupe_count: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class RawObservation(BaseModel):
    """
    One decoded inspect result.

    Stattrak can arrive as a kill-eater counter (older feeds) or as an explicit
    flag; souvenir as quality 12 or as an explicit flag. Both shapes are kept
    here and resolved once in codec.normalize.
    """

    defindex: int
    paintindex: int
    paintseed: int
    floatvalue: float = Field(allow_inf_nan=False)

    a: str
    s: str = "0"
    m: str = "0"
    d: str = "0"
    floatid: Optional[str] = None

    origin: Optional[int] = None
    quality: Optional[int] = None
    rarity: Optional[int] = None

    killeatervalue: Optional[int] = None
    stattrak: Optional[bool] = None
    souvenir: Optional[bool] = None

    stickers: List[RawSticker] = Field(default_factory=list)

    listed_price: Optional[float] = None
    inventory: Optional[int] = None
    imageurl: Optional[str] = None
    weapon_type: Optional[str] = None
    item_name: Optional[str] = None
    rarity_name: Optional[str] = None
    quality_name: Optional[str] = None
    origin_name: Optional[str] = None
    wear_name: Optional[str] = None
    full_item_name: Optional[str] = None

    @field_validator("floatvalue")
    @classmethod
    def _float32_wear(cls, v):
        # paintwear is the float32 bit pattern, so the wear has to fit one
        try:
            struct.pack(">f", v)
        except OverflowError:
            raise ValueError(f"floatvalue {v!r} is outside the float32 range") from None
        return v

    @field_validator("a", "s", "m", "d", mode="before")
    @classmethod
    def _coerce_ids(cls, v):
        return _id_str(v)

    @field_validator("floatid", mode="before")
    @classmethod
    def _coerce_floatid(cls, v):
        return None if v is None else _id_str(v)

    @field_validator("stickers", mode="before")
    @classmethod
    def _none_stickers(cls, v):
        return v or []


# ---------- stored form ----------

class StoredSticker(BaseModel):
    """Compact sticker annotation as kept in items.stickers"""

    s: int                       # slot
    i: int                       # sticker catalog id
    w: Optional[float] = None    # wear
    r: Optional[float] = None    # rotation
    x: Optional[float] = None    # offset_x
    y: Optional[float] = None    # offset_y
    d: Optional[int] = None      # duplicate count
    codename: Optional[str] = None
    material: Optional[str] = None
    name: Optional[str] = None


class ItemProps(BaseModel):
    origin: Optional[int] = None
    quality: Optional[int] = None
    rarity: Optional[int] = None


class CanonicalItem(BaseModel):
    defindex: int
    paintindex: int
    paintwear: int
    paintseed: int

    floatid: int
    a: int
    d: int
    ms: int

    stattrak: bool = False
    souvenir: bool = False
    props: ItemProps = Field(default_factory=ItemProps)
    stickers: Optional[List[StoredSticker]] = None

    updated: Optional[datetime] = None
    price: Optional[float] = None
    listed_price: Optional[float] = None

    inventory: Optional[int] = None
    imageurl: Optional[str] = None
    weapon_type: Optional[str] = None
    item_name: Optional[str] = None
    rarity_name: Optional[str] = None
    quality_name: Optional[str] = None
    origin_name: Optional[str] = None
    wear_name: Optional[str] = None
    full_item_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("props", mode="before")
    @classmethod
    def _none_props(cls, v):
        return v or {}

    def to_row(self) -> dict:
        """Column values for items; stickers/props flattened to plain JSON"""
        row = self.model_dump(exclude={"stickers", "props"})
        row["props"] = self.props.model_dump()
        row["stickers"] = (
            [s.model_dump(exclude_none=True) for s in self.stickers] if self.stickers else None
        )
        return row


# ---------- API output ----------

class ExternalSticker(BaseModel):
    slot: int
    sticker_id: int = Field(serialization_alias="stickerId")
    codename: Optional[str] = None
    material: Optional[str] = None
    name: Optional[str] = None
    wear: Optional[float] = None
    rotation: Optional[float] = None
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None
    dupe_count: Optional[int] = None


class ExternalItem(BaseModel):
    """Item as returned to lookup callers; storage-only fields are not part of it"""

    defindex: int
    paintindex: int
    paintseed: int
    floatvalue: float

    a: str
    s: str
    m: str
    d: str
    floatid: str

    origin: Optional[int] = None
    quality: Optional[int] = None
    rarity: Optional[int] = None
    killeatervalue: Optional[int] = None

    stickers: List[ExternalSticker] = Field(default_factory=list)

    inventory: Optional[int] = None
    imageurl: Optional[str] = None
    weapon_type: Optional[str] = None
    item_name: Optional[str] = None
    rarity_name: Optional[str] = None
    quality_name: Optional[str] = None
    origin_name: Optional[str] = None
    wear_name: Optional[str] = None
    full_item_name: Optional[str] = None


class LookupRequest(BaseModel):
    a: str

    @field_validator("a", mode="before")
    @classmethod
    def _coerce_a(cls, v):
        return _id_str(v)
