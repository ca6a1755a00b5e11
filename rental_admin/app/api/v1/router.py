"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from rental_admin.app.api.v1.endpoints import customers, vehicles, reservations

router = APIRouter()

router.include_router(customers.router)
router.include_router(vehicles.router)

# Reservations (includes the CSV export)
router.include_router(reservations.router)
