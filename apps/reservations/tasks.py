"""Celery tasks for the reservation domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from shared.application.message_bus import message_bus

from . import conf
from .application.command_handlers import ExpirePendingReservationsCommand
from .services import get_reservation_service

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat, outside the reservation engine)
# ============================================================================

@shared_task(name="reservations.expire_pending_reservations")
def expire_pending_reservations() -> dict[str, int]:
    """
    Release pending reservations whose payment hold has run out.

    The hold length comes from RESERVATIONS["PENDING_HOLD_MINUTES"].

    Returns:
        dict: {"expired": number of released reservations}
    """
    get_reservation_service()
    expired = message_bus.handle_command(ExpirePendingReservationsCommand(hold=conf.pending_hold()))
    logger.info(f"Pending hold expiry released {len(expired)} reservation(s)")
    return {"expired": len(expired)}
