"""
Skin item endpoints

POST /api/items                   ingest one inspect observation (+ optional price)
POST /api/items/lookup            batched lookup by asset id
GET  /api/items/{asset_id}/rank   wear rank among same-template peers
PUT  /api/items/{asset_id}/price  record a new price for a stored item
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from floatdb.schemas.item import ExternalItem, LookupRequest, RawObservation
from floatdb.services.item_store import SkinStore

router = APIRouter()


def get_store(request: Request) -> SkinStore:
    return request.app.state.store


class InsertRequest(BaseModel):
    item: RawObservation
    price: Optional[float] = None


class LookupBody(BaseModel):
    lookups: List[LookupRequest]


class PriceBody(BaseModel):
    price: Optional[float] = None


@router.post("")
async def insert_item(body: InsertRequest, store: SkinStore = Depends(get_store)):
    """Buffered stores only queue the item; it lands on the next flush"""
    await store.insert_item_data(body.item, body.price)
    return {"queued": store.queue.buffered}


@router.post("/lookup", response_model=List[ExternalItem], response_model_by_alias=True)
async def lookup_items(body: LookupBody, store: SkinStore = Depends(get_store)):
    return await store.get_item_data(body.lookups)


@router.get("/{asset_id}/rank")
async def item_rank(asset_id: str, store: SkinStore = Depends(get_store)):
    return await store.get_item_rank(_parse_asset(asset_id))


@router.put("/{asset_id}/price")
async def update_price(asset_id: str, body: PriceBody, store: SkinStore = Depends(get_store)):
    found = await store.update_item_price(_parse_asset(asset_id), body.price)
    if not found:
        raise HTTPException(status_code=404, detail="Item not found")
    return {"a": asset_id, "price": body.price}


def _parse_asset(asset_id: str) -> int:
    try:
        n = int(asset_id)
    except ValueError:
        raise HTTPException(status_code=422, detail="asset_id must be an unsigned 64-bit integer") from None
    if not 0 <= n < 1 << 64:
        raise HTTPException(status_code=422, detail="asset_id must be an unsigned 64-bit integer")
    return n
