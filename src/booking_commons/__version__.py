"""Version information for booking-commons."""

__version__ = "0.3.0"
