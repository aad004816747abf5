"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from shiptrack.app.api.v1.endpoints import auth, dashboard, shipments

router = APIRouter()

# Include authentication endpoints
router.include_router(auth.router)

# Dashboard before shipments so /shipments/dashboard/* is matched first
router.include_router(dashboard.router)

# Shipment tracking endpoints
router.include_router(shipments.router)
