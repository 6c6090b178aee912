"""Utility helpers for booking-commons."""

from .datetime import utc_now, to_utc, parse_iso8601

__all__ = ["utc_now", "to_utc", "parse_iso8601"]
