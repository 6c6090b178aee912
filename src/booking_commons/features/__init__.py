"""Feature modules for booking-commons."""
