"""
Inspect observation <-> stored item conversion

Everything here is pure: no I/O, no state.

  paintwear   — the float32 bit pattern of floatvalue read back as a big-endian
                int32. Sorting on it sorts on the float (same sign), and it turns
                back into the exact same float32, so it is safe inside the unique
                identity key where a REAL would suffer rounding.
  64-bit ids  — Steam hands out unsigned 64-bit ids, SQL BIGINT is signed; ids
                are reinterpreted as two's complement on the way in and out.
  ms          — owner steamid and market listing id share one column; at most
                one of them is non-zero for any observation.
"""

from __future__ import annotations

import logging
import struct
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from floatdb.schemas.item import (
    CanonicalItem,
    ExternalItem,
    ExternalSticker,
    ItemProps,
    RawObservation,
    RawSticker,
    StoredSticker,
)

logger = logging.getLogger(__name__)

# The 0.0 float Karambit is the one real item with a non-positive wear
ZERO_FLOAT_DEFINDEX = 507
SOUVENIR_QUALITY = 12

_U64 = 1 << 64
_I64_MAX = (1 << 63) - 1

IdLike = Union[int, str]


# ------------------------------------------------------------------ #
#  wear encoding                                                       #
# ------------------------------------------------------------------ #

def encode_wear(wear: float) -> int:
    return struct.unpack(">i", struct.pack(">f", wear))[0]


def decode_wear(paintwear: int) -> float:
    return struct.unpack(">f", struct.pack(">i", paintwear))[0]


# ------------------------------------------------------------------ #
#  64-bit id transforms                                                #
# ------------------------------------------------------------------ #

def unsigned_to_signed(value: IdLike) -> int:
    n = int(value)
    if not 0 <= n < _U64:
        raise ValueError(f"not an unsigned 64-bit id: {value!r}")
    return n - _U64 if n > _I64_MAX else n


def signed_to_unsigned(value: IdLike) -> int:
    n = int(value)
    if not -(1 << 63) <= n <= _I64_MAX:
        raise ValueError(f"not a signed 64-bit id: {value!r}")
    return n + _U64 if n < 0 else n


def is_steam_id64(value: Optional[IdLike]) -> bool:
    """
    Plausibility check for an individual/group SteamID64:
      bits 56-63 universe (1-4), 52-55 account type (1-10),
      32-51 instance (<= 32), 0-31 account id (non-zero).
    """
    if value is None:
        return False
    try:
        n = int(value)
    except (TypeError, ValueError):
        return False
    if not 0 < n < _U64:
        return False

    universe = n >> 56
    account_type = (n >> 52) & 0xF
    instance = (n >> 32) & 0xFFFFF
    account_id = n & 0xFFFFFFFF
    return 1 <= universe <= 4 and 1 <= account_type <= 10 and instance <= 32 and account_id > 0


# ------------------------------------------------------------------ #
#  stickers                                                            #
# ------------------------------------------------------------------ #

def annotate_stickers(stickers: Optional[Iterable[RawSticker]]) -> Optional[List[StoredSticker]]:
    """
    Map raw stickers to their stored form and fill in duplicate counts.

    Returns None (not []) when there are no stickers.
    """
    stored = [
        StoredSticker(
            s=st.slot,
            i=st.sticker_id,
            w=st.wear,
            r=st.rotation,
            x=st.offset_x,
            y=st.offset_y,
            d=st.dupe_count,
            codename=st.codename,
            material=st.material,
            name=st.name,
        )
        for st in (stickers or [])
    ]
    if not stored:
        return None

    # Group sizes and existing markers are taken from the input before anything
    # is written, so every member of a group ends up with the same count
    counts = Counter(st.i for st in stored)
    marked = {st.i for st in stored if st.d is not None and st.d > 1}
    for st in stored:
        if counts[st.i] > 1 and st.i not in marked:
            st.d = counts[st.i]
    return stored


def _external_sticker(st: StoredSticker) -> ExternalSticker:
    return ExternalSticker(
        slot=st.s,
        sticker_id=st.i,
        codename=st.codename,
        material=st.material,
        name=st.name,
        wear=st.w,
        rotation=st.r,
        offset_x=st.x,
        offset_y=st.y,
        dupe_count=st.d,
    )


# ------------------------------------------------------------------ #
#  normalize / denormalize                                             #
# ------------------------------------------------------------------ #

def is_stattrak(raw: RawObservation) -> bool:
    # Explicit flag (newer feeds) wins; otherwise any kill-eater counter, even 0
    if raw.stattrak is not None:
        return raw.stattrak
    return raw.killeatervalue is not None


def is_souvenir(raw: RawObservation) -> bool:
    if raw.souvenir is not None:
        return raw.souvenir
    return raw.quality == SOUVENIR_QUALITY


def normalize(raw: RawObservation, now: Optional[datetime] = None) -> Optional[CanonicalItem]:
    """Build the stored item for an observation, or None if it must not be stored."""
    if raw.floatvalue <= 0 and raw.defindex != ZERO_FLOAT_DEFINDEX:
        logger.debug("normalize: skipping a=%s with floatvalue %r", raw.a, raw.floatvalue)
        return None

    a = unsigned_to_signed(raw.a)
    s = unsigned_to_signed(raw.s)
    m = unsigned_to_signed(raw.m)

    return CanonicalItem(
        defindex=raw.defindex,
        paintindex=raw.paintindex,
        paintwear=encode_wear(raw.floatvalue),
        paintseed=raw.paintseed,
        floatid=unsigned_to_signed(raw.floatid) if raw.floatid is not None else a,
        a=a,
        d=unsigned_to_signed(raw.d),
        ms=s if s != 0 else m,
        stattrak=is_stattrak(raw),
        souvenir=is_souvenir(raw),
        props=ItemProps(origin=raw.origin, quality=raw.quality, rarity=raw.rarity),
        stickers=annotate_stickers(raw.stickers),
        updated=now or datetime.now(timezone.utc),
        listed_price=raw.listed_price,
        inventory=raw.inventory,
        imageurl=raw.imageurl,
        weapon_type=raw.weapon_type,
        item_name=raw.item_name,
        rarity_name=raw.rarity_name,
        quality_name=raw.quality_name,
        origin_name=raw.origin_name,
        wear_name=raw.wear_name,
        full_item_name=raw.full_item_name,
    )


def denormalize(item: CanonicalItem) -> ExternalItem:
    ms = str(signed_to_unsigned(item.ms))
    if is_steam_id64(ms):
        s, m = ms, "0"
    else:
        s, m = "0", ms

    return ExternalItem(
        defindex=item.defindex,
        paintindex=item.paintindex,
        paintseed=item.paintseed,
        floatvalue=decode_wear(item.paintwear),
        a=str(signed_to_unsigned(item.a)),
        s=s,
        m=m,
        d=str(signed_to_unsigned(item.d)),
        floatid=str(signed_to_unsigned(item.floatid)),
        origin=item.props.origin,
        quality=item.props.quality,
        rarity=item.props.rarity,
        # Only "is stattrak" survives storage, not the counter itself
        killeatervalue=0 if item.stattrak else None,
        stickers=[_external_sticker(st) for st in item.stickers or []],
        inventory=item.inventory,
        imageurl=item.imageurl,
        weapon_type=item.weapon_type,
        item_name=item.item_name,
        rarity_name=item.rarity_name,
        quality_name=item.quality_name,
        origin_name=item.origin_name,
        wear_name=item.wear_name,
        full_item_name=item.full_item_name,
    )
