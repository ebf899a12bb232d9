"""Reservation engine settings, read from settings.RESERVATIONS with defaults."""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings  # type: ignore

DEFAULTS = {
    "DEFAULT_SLOT_MINUTES": 60,
    "PENDING_HOLD_MINUTES": 15,
    "STORE_TIMEOUT_MS": 5000,
}


def get(name: str):
    overrides = getattr(settings, "RESERVATIONS", {}) or {}
    if name not in DEFAULTS:
        raise KeyError(f"Unknown reservation setting: {name}")
    return overrides.get(name, DEFAULTS[name])


def default_slot_size() -> timedelta:
    return timedelta(minutes=int(get("DEFAULT_SLOT_MINUTES")))


def pending_hold() -> timedelta:
    return timedelta(minutes=int(get("PENDING_HOLD_MINUTES")))


def store_timeout_ms() -> int | None:
    value = get("STORE_TIMEOUT_MS")
    return int(value) if value else None
