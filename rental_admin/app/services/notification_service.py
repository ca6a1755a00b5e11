"""
Notification Service.

Sends WhatsApp messages to the admin phone through the CallMeBot HTTP API
when reservations are created.
"""

import logging
from datetime import tzinfo
from typing import Optional

import httpx

from rental_admin.app.core.config import settings
from rental_admin.app.core.reliability import whatsapp_circuit_breaker
from rental_admin.app.domain.availability.validator import to_business_time

logger = logging.getLogger("rental_admin.notifications")


class NotificationNotConfiguredError(Exception):
    """Raised when the admin phone or API key is missing."""


class NotificationService:

    @staticmethod
    def format_reservation_message(reservation, tz: tzinfo) -> str:
        """
        Build the admin WhatsApp text for a new rental reservation.

        Expects `customer` and `vehicle` to be loaded on the reservation.
        """
        start = to_business_time(reservation.start_at, tz)
        end = to_business_time(reservation.end_at, tz)
        customer = reservation.customer
        vehicle = reservation.vehicle

        lines = [
            "🚘 *NUOVA PRENOTAZIONE NOLEGGIO*",
            "",
            f"*ID:* DR7-{str(reservation.id).zfill(6)}",
            f"*Cliente:* {customer.full_name if customer else 'Cliente'}",
        ]
        if customer and customer.email:
            lines.append(f"*Email:* {customer.email}")
        if customer and customer.phone:
            lines.append(f"*Telefono:* {customer.phone}")
        lines += [
            f"*Veicolo:* {vehicle.display_name if vehicle else '-'}",
            f"*Ritiro:* {start.strftime('%d/%m/%Y')} alle {start.strftime('%H:%M')}",
            f"*Riconsegna:* {end.strftime('%d/%m/%Y')} alle {end.strftime('%H:%M')}",
            f"*Totale:* {format_amount(reservation.total_amount, reservation.currency)}",
            f"*Stato:* {status_value(reservation.status)}",
        ]
        return "\n".join(lines)

    @staticmethod
    async def send_whatsapp_message(
        message: str,
        client: Optional[httpx.AsyncClient] = None
    ) -> None:
        """
        Send a message to the admin phone.

        Raises:
            NotificationNotConfiguredError: Phone or API key not set
            httpx.HTTPError: Transport failure or non-2xx response
            CircuitOpenError: Too many recent failures
        """
        if not settings.callmebot_admin_phone or not settings.callmebot_api_key:
            raise NotificationNotConfiguredError("CALLMEBOT_ADMIN_PHONE / CALLMEBOT_API_KEY not configured")

        params = {
            "phone": settings.callmebot_admin_phone,
            "text": message,
            "apikey": settings.callmebot_api_key,
        }

        async def _send(http: httpx.AsyncClient):
            response = await http.get(settings.callmebot_url, params=params)
            response.raise_for_status()

        if client is not None:
            await whatsapp_circuit_breaker.call(_send, client)
            return

        async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as http:
            await whatsapp_circuit_breaker.call(_send, http)

    @staticmethod
    async def notify_reservation_created(reservation, tz: tzinfo) -> bool:
        """
        Best-effort admin notification for a new reservation.

        Returns:
            True if sent; failures are logged and reported as False
        """
        try:
            message = NotificationService.format_reservation_message(reservation, tz)
            await NotificationService.send_whatsapp_message(message)
        except NotificationNotConfiguredError as exc:
            logger.warning("WhatsApp notification skipped: %s", exc)
            return False
        except Exception as exc:
            logger.error("Error sending WhatsApp notification for reservation %s: %s", reservation.id, exc)
            return False

        logger.info("WhatsApp notification sent for reservation %s", reservation.id)
        return True


def format_amount(amount, currency: str) -> str:
    symbol = "€" if (currency or "").upper() == "EUR" else f"{currency} "
    return f"{symbol}{float(amount or 0):.2f}"


def status_value(status) -> str:
    return getattr(status, "value", status)
