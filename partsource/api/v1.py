"""Versioned API surface: every module router is mounted under /api/v1."""

from fastapi import APIRouter

from partsource.modules.bom.router import router as bom_router
from partsource.modules.rfq.router import router as rfq_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(bom_router)
v1_router.include_router(rfq_router)
