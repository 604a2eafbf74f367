from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from homelead.api.deps import get_stores
from homelead.core.config import BOOKING_URL
from homelead.services.json_store import Stores

logger = logging.getLogger("homelead.api.health")
router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/store")
def store_health(stores: Stores = Depends(get_stores)):
    s = stores.customers.stats()
    tags = len(stores.tags.list())
    broadcasts = len(stores.broadcasts.newest_first())
    logger.info("GET /health/store customers=%d tags=%d broadcasts=%d", s["customers"], tags, broadcasts)
    return {"ok": True, "customers": s["customers"], "tags": tags, "broadcasts": broadcasts}


@router.get("/config")
def public_config():
    """Client-side settings the static frontend needs."""
    return {"bookingUrl": BOOKING_URL}
