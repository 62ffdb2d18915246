"""API v1 routes."""

from fastapi import APIRouter

from trustgate.api.v1 import governance, health, radar, scans, vulnerabilities

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(scans.router, prefix="/scans", tags=["scans"])
router.include_router(vulnerabilities.router, prefix="/vulnerabilities", tags=["vulnerabilities"])
router.include_router(radar.router, prefix="/radar", tags=["radar"])
router.include_router(governance.router, prefix="/governance", tags=["governance"])
