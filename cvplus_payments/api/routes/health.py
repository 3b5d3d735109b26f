"""Liveness endpoint (no authentication)."""

from fastapi import APIRouter

from cvplus_payments import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok", "version": __version__}
