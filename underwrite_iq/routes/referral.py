# This project was developed with assistance from AI tools.
"""GET /referral-lookup -- replay a cached result by referral id."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..services.dedupe import DedupeStore, get_dedupe_store

router = APIRouter()


@router.get("/referral-lookup")
async def referral_lookup(
    ref: str = Query(default=""),
    store: DedupeStore = Depends(get_dedupe_store),
):
    redirect = await store.lookup_by_ref(ref)
    if redirect is None:
        return JSONResponse(status_code=404, content={"ok": False})
    return {"ok": True, "redirect": redirect}
