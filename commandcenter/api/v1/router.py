"""Main API v1 router."""
from fastapi import APIRouter

from commandcenter.api.v1 import (
    conflict, crypto, cyber, health, logistics, macro,
    news, pipelines, polymarket, quotes,
)

router = APIRouter()

router.include_router(health.router, tags=["health"])
router.include_router(pipelines.router)  # Status bar / widget footers
router.include_router(quotes.router)
router.include_router(crypto.router)
router.include_router(polymarket.router)
router.include_router(news.router)
router.include_router(conflict.router)
router.include_router(cyber.router)
router.include_router(logistics.router)
router.include_router(macro.router)
