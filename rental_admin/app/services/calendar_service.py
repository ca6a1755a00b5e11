"""
Google Calendar integration.

Mirrors each admin reservation as a calendar event and blocks out days when
a vehicle cannot be rented. Calendar calls never decide the fate of a
reservation: the reservation flow uses the `sync_*` helpers, which log
failures and move on.
"""

import logging
from datetime import date, timedelta, tzinfo
from typing import Any, Dict, Optional

import httpx

from rental_admin.app.core.config import settings
from rental_admin.app.core.reliability import calendar_circuit_breaker
from rental_admin.app.domain.availability.validator import to_business_time

logger = logging.getLogger("rental_admin.calendar")

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarNotConfiguredError(Exception):
    """Raised when Google OAuth credentials are missing."""


class CalendarError(Exception):
    """Raised when the Calendar API answers with an error."""


def booking_tag(reservation_id: Any) -> str:
    """Marker written into the event description and used to find it again."""
    return f"DR7-{str(reservation_id).zfill(6)}"


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or fallback
    return data.get("error_description") or fallback


class CalendarService:

    @staticmethod
    def build_event(reservation, tz: tzinfo) -> Dict[str, Any]:
        """Calendar event body for a reservation with customer and vehicle loaded."""
        customer = reservation.customer
        vehicle = reservation.vehicle
        customer_name = customer.full_name if customer else "Cliente"
        vehicle_name = vehicle.display_name if vehicle else "-"
        tz_name = getattr(tz, "key", settings.business_timezone)

        description = "\n".join([
            "Booking Details:",
            f"Vehicle: {vehicle_name}",
            f"Customer: {customer_name}",
            f"Email: {(customer.email if customer else None) or '-'}",
            f"Phone: {(customer.phone if customer else None) or '-'}",
            f"Total Price: {reservation.total_amount} {reservation.currency}",
            f"Booking ID: {booking_tag(reservation.id)}",
        ])

        event = {
            "summary": f"{vehicle_name} - {customer_name}",
            "description": description,
            "start": {
                "dateTime": to_business_time(reservation.start_at, tz).replace(tzinfo=None).isoformat(),
                "timeZone": tz_name,
            },
            "end": {
                "dateTime": to_business_time(reservation.end_at, tz).replace(tzinfo=None).isoformat(),
                "timeZone": tz_name,
            },
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
            "colorId": "11",
        }
        if customer and customer.email:
            event["attendees"] = [{"email": customer.email, "displayName": customer_name}]
        return event

    @staticmethod
    def build_unavailability_event(
        vehicle,
        unavailable_from: date,
        unavailable_until: date,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        All-day busy block covering `unavailable_from` to `unavailable_until`
        inclusive. Google treats the end date as exclusive, hence the extra day.
        """
        vehicle_label = f"{vehicle.display_name} ({vehicle.plate})" if vehicle.plate else vehicle.display_name

        lines = ["🚫 VEICOLO NON DISPONIBILE", f"Veicolo: {vehicle.display_name}"]
        if vehicle.plate:
            lines.append(f"Targa: {vehicle.plate}")
        if reason:
            lines.append(f"Motivo: {reason}")
        lines.append(f"Periodo: {unavailable_from.isoformat()} - {unavailable_until.isoformat()}")

        return {
            "summary": f"❌ NON DISPONIBILE - {vehicle_label}",
            "description": "\n".join(lines),
            "start": {"date": unavailable_from.isoformat()},
            "end": {"date": (unavailable_until + timedelta(days=1)).isoformat()},
            "colorId": "11",
            "transparency": "opaque",
        }

    @staticmethod
    def is_configured() -> bool:
        return bool(settings.google_client_id and settings.google_client_secret and settings.google_refresh_token)

    @staticmethod
    async def get_access_token(client: httpx.AsyncClient) -> str:
        if not CalendarService.is_configured():
            raise CalendarNotConfiguredError("Google credentials not configured")

        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "refresh_token": settings.google_refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code != 200:
            raise CalendarError(_error_message(response, "Failed to get access token"))
        return response.json()["access_token"]

    @staticmethod
    async def create_event(reservation, tz: tzinfo, client: httpx.AsyncClient) -> Dict[str, Any]:
        """
        Create the calendar event for a reservation.

        Returns:
            The created event resource (includes `id` and `htmlLink`)
        """
        return await CalendarService.insert_event(CalendarService.build_event(reservation, tz), client)

    @staticmethod
    async def create_unavailability_event(
        vehicle,
        unavailable_from: date,
        unavailable_until: date,
        client: httpx.AsyncClient,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """Block the vehicle's days in the calendar. Returns the created event."""
        event = CalendarService.build_unavailability_event(vehicle, unavailable_from, unavailable_until, reason)
        return await CalendarService.insert_event(event, client)

    @staticmethod
    async def insert_event(event: Dict[str, Any], client: httpx.AsyncClient) -> Dict[str, Any]:
        token = await CalendarService.get_access_token(client)
        response = await client.post(
            f"{GOOGLE_CALENDAR_API}/calendars/{settings.google_calendar_id}/events",
            json=event,
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code not in (200, 201):
            raise CalendarError(_error_message(response, "Failed to create calendar event"))
        return response.json()

    @staticmethod
    async def delete_event(reservation_id: Any, client: httpx.AsyncClient) -> Optional[str]:
        """
        Delete the event carrying the reservation's booking tag.

        Returns:
            Deleted event id, or None if no matching event exists
        """
        token = await CalendarService.get_access_token(client)
        headers = {"Authorization": f"Bearer {token}"}
        tag = booking_tag(reservation_id)

        search = await client.get(
            f"{GOOGLE_CALENDAR_API}/calendars/{settings.google_calendar_id}/events",
            params={"q": tag},
            headers=headers,
        )
        if search.status_code != 200:
            raise CalendarError(_error_message(search, "Failed to search calendar events"))

        match = next(
            (item for item in search.json().get("items", []) if tag in (item.get("description") or "")),
            None,
        )
        if match is None:
            logger.info("No calendar event found for reservation %s", reservation_id)
            return None

        response = await client.delete(
            f"{GOOGLE_CALENDAR_API}/calendars/{settings.google_calendar_id}/events/{match['id']}",
            headers=headers,
        )
        if response.status_code not in (200, 204):
            raise CalendarError(_error_message(response, "Failed to delete calendar event"))
        return match["id"]

    @staticmethod
    async def sync_reservation_created(reservation, tz: tzinfo) -> Optional[str]:
        """Fire-and-forget event creation. Returns the event id or None."""
        if not CalendarService.is_configured():
            logger.warning("Calendar sync skipped: Google credentials not configured")
            return None
        try:
            async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as client:
                event = await calendar_circuit_breaker.call(
                    CalendarService.create_event, reservation, tz, client
                )
        except Exception as exc:
            logger.error("Error creating calendar event for reservation %s: %s", reservation.id, exc)
            return None
        return event.get("id")

    @staticmethod
    async def sync_reservation_cancelled(reservation_id: Any) -> Optional[str]:
        """Fire-and-forget event deletion. Returns the deleted event id or None."""
        if not CalendarService.is_configured():
            logger.warning("Calendar sync skipped: Google credentials not configured")
            return None
        try:
            async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as client:
                return await calendar_circuit_breaker.call(
                    CalendarService.delete_event, reservation_id, client
                )
        except Exception as exc:
            logger.error("Error deleting calendar event for reservation %s: %s", reservation_id, exc)
        return None
