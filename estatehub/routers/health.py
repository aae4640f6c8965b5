# estatehub/routers/health.py
from __future__ import annotations

from fastapi import APIRouter

from ..models import utcnow

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat() + "Z"}
