"""
Per-vehicle reservation lock.

Serializes "check availability, then insert" for one vehicle so two
concurrent requests cannot both pass validation for overlapping intervals.
The lock is a Redis key set with NX and a TTL, so a crashed worker cannot
hold a vehicle forever.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

from redis.exceptions import RedisError

from rental_admin.app.core.config import settings
from rental_admin.app.core.exceptions import ReservationLockUnavailableError, VehicleBusyError

logger = logging.getLogger("rental_admin.locking")

LOCK_KEY_PREFIX = "reservation-lock:vehicle:"


def lock_key(vehicle_id: Any) -> str:
    return f"{LOCK_KEY_PREFIX}{vehicle_id}"


async def acquire_vehicle_lock(redis, vehicle_id: Any, ttl_seconds: int) -> str:
    """
    Take the reservation lock for a vehicle.

    Args:
        redis: Async Redis client
        vehicle_id: Vehicle to lock
        ttl_seconds: Lock expiry

    Returns:
        Token identifying this holder (needed to release)

    Raises:
        VehicleBusyError: Another request holds the lock
        ReservationLockUnavailableError: Redis is unreachable
    """
    token = uuid.uuid4().hex
    try:
        acquired = await redis.set(lock_key(vehicle_id), token, nx=True, ex=ttl_seconds)
    except RedisError as exc:
        logger.error("Reservation lock backend unavailable: %s", exc)
        raise ReservationLockUnavailableError() from exc

    if not acquired:
        raise VehicleBusyError(vehicle_id)
    return token


async def release_vehicle_lock(redis, vehicle_id: Any, token: str) -> bool:
    """
    Release the lock if this holder still owns it.

    Returns:
        True if released, False if it had expired or changed hands
    """
    key = lock_key(vehicle_id)
    try:
        current = await redis.get(key)
        if current != token:
            logger.warning("Reservation lock for vehicle %s expired before release", vehicle_id)
            return False
        await redis.delete(key)
    except RedisError as exc:
        # Key expires on its own
        logger.warning("Failed to release reservation lock for vehicle %s: %s", vehicle_id, exc)
        return False
    return True


@asynccontextmanager
async def vehicle_reservation_lock(redis, vehicle_id: Any, ttl_seconds: int = None):
    """Hold the vehicle's reservation lock for the duration of the block."""
    ttl = ttl_seconds or settings.reservation_lock_ttl_seconds
    token = await acquire_vehicle_lock(redis, vehicle_id, ttl)
    try:
        yield token
    finally:
        await release_vehicle_lock(redis, vehicle_id, token)
